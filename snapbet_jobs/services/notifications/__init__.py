from snapbet_jobs.services.notifications.planner import NotificationPlanner

__all__ = ["NotificationPlanner"]
