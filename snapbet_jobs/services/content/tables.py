"""
Closed set of content tables the lifecycle and cleanup jobs may touch.

Jobs refer to tables through ContentTable members, never through raw table
name strings, so an unsupported table cannot be addressed at all.
"""
from enum import Enum
from typing import Tuple

from snapbet_jobs.models import Comment, Message, Post, Story


class ContentTable(Enum):
    POSTS = "posts"
    STORIES = "stories"
    MESSAGES = "messages"
    COMMENTS = "comments"

    @property
    def model(self):
        return _MODELS[self]


_MODELS = {
    ContentTable.POSTS: Post,
    ContentTable.STORIES: Story,
    ContentTable.MESSAGES: Message,
    ContentTable.COMMENTS: Comment,
}

# Tables with an explicit expires_at column honored as-is
EXPIRING_TABLES: Tuple[ContentTable, ...] = (ContentTable.STORIES, ContentTable.MESSAGES)

# Hard-delete order: children before parents
HARD_DELETE_ORDER: Tuple[ContentTable, ...] = (
    ContentTable.COMMENTS,
    ContentTable.POSTS,
    ContentTable.STORIES,
    ContentTable.MESSAGES,
)
