"""
Exception hierarchy for the job runner.

Per-item errors (InvalidBetError, GameNotSettleableError) are caught by the
job that owns the batch and collected into the job result. Everything else
propagates to BaseJob.execute, which turns it into a failed JobResult.
"""


class JobError(Exception):
    """Base class for job runner errors."""


class ConfigurationError(JobError):
    """Required settings are missing; raised before any mutation."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required settings: {', '.join(missing)}")


class DestructiveJobError(JobError):
    """A destructive job was started for real without an explicit force."""

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' is destructive; rerun with force or as a dry run")


class UnknownJobError(JobError):
    """A job name that the scheduler does not know about."""

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Unknown job: {job_name}")


class JobTimeoutError(JobError):
    """A job exceeded its configured timeout."""

    def __init__(self, job_name: str, timeout: float):
        self.job_name = job_name
        self.timeout = timeout
        super().__init__(f"Job '{job_name}' timed out after {timeout:g}s")


class SettlementError(JobError):
    """Base class for settlement failures."""


class InvalidBetError(SettlementError):
    """A bet whose type or details cannot be resolved against the game."""

    def __init__(self, bet_id: str, reason: str):
        self.bet_id = bet_id
        self.reason = reason
        super().__init__(f"Bet {bet_id}: {reason}")


class GameNotSettleableError(SettlementError):
    """A game that is not completed or is missing a final score."""

    def __init__(self, game_id: str, reason: str):
        self.game_id = game_id
        self.reason = reason
        super().__init__(f"Game {game_id}: {reason}")


class GameNotFoundError(SettlementError):
    """Raised when a game id does not exist."""

    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")
