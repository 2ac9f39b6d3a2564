"""
Domain errors raised by the gamification engine.

Routers translate them to HTTP status codes; listeners report them in their
result payload.
"""


class GamificationError(Exception):
    """Base class for every engine error"""
    retryable = False


class InvalidActionError(GamificationError, ValueError):
    """Unknown action kind or malformed payload. Nothing was applied."""


class PersistenceError(GamificationError):
    """The stats store could not be read or written. Nothing was committed."""
    retryable = True


class StatsConflictError(PersistenceError):
    """Conditional write lost against a concurrent update of the same user."""
    
    def __init__(self, user_id: str, expected_version: int):
        self.user_id = user_id
        self.expected_version = expected_version
        super().__init__(
            f"Concurrent modification of stats for user {user_id} "
            f"(expected version {expected_version})"
        )
