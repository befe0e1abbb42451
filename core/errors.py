"""Exceptions raised by the scheduling and session core.

Persistence errors are not wrapped: whatever the backing store raises
propagates to the caller unchanged.
"""


class ScoreReadError(Exception):
    """Base class for all scoreread-core errors."""


class EmptyQueueError(ScoreReadError):
    """Raised when a session is started with no eligible spots."""

    def __init__(self, message: str = "No spots available to practice"):
        super().__init__(message)


class InvalidStateTransitionError(ScoreReadError):
    """Raised when an operation is not valid for the current session state."""

    def __init__(self, from_state: str, action: str):
        self.from_state = from_state
        self.action = action
        super().__init__(f"Cannot {action} while session is {from_state}")


class AlreadyActiveSessionError(ScoreReadError):
    """Raised when starting a session while another one is running or paused."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} is still active")


class SpotNotFoundError(ScoreReadError):
    """Raised when a spot referenced by a session is missing from the store."""

    def __init__(self, spot_id: str):
        self.spot_id = spot_id
        super().__init__(f"Spot {spot_id} not found")
