"""Practice session Data Transfer Objects."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .spot import SpotResult, normalize_datetimes


class SessionMode(Enum):
    """Selection strategy used to build a session queue."""

    SMART = "smart"
    CRITICAL = "critical"
    BALANCED = "balanced"
    MAINTENANCE = "maintenance"
    WARMUP = "warmup"
    REVIEW = "review"

    @property
    def display_name(self) -> str:
        return _MODE_NAMES[self]


_MODE_NAMES = {
    SessionMode.SMART: "Smart Practice",
    SessionMode.CRITICAL: "Critical Focus",
    SessionMode.BALANCED: "Balanced Practice",
    SessionMode.MAINTENANCE: "Maintenance Session",
    SessionMode.WARMUP: "Quick Warmup",
    SessionMode.REVIEW: "Review Session",
}


class SessionStatus(Enum):
    """Lifecycle state of a practice session record."""

    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (SessionStatus.RUNNING, SessionStatus.PAUSED)

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


@dataclass(frozen=True)
class SpotSession:
    """One spot's slot within a practice session."""

    spot_id: str
    order_index: int
    allocated_time: int  # seconds
    actual_elapsed: int = 0  # seconds
    result: Optional[SpotResult] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        normalize_datetimes(self, "started_at", "completed_at")

    @property
    def is_completed(self) -> bool:
        return self.result is not None


@dataclass(frozen=True)
class PracticeSession:
    """A single practice run over an ordered queue of spots.

    Attributes:
        id: Unique identifier
        name: Display name ("<scope> - <mode>")
        mode: Selection strategy that built the queue
        status: Lifecycle state
        spot_sessions: Ordered queue entries
        start_time: When the session started
        end_time: When it completed or was cancelled
        piece_id: Piece scope, None for the whole library
        user_id: Owner of the session
        elapsed_seconds: Practice time accumulated while running
    """

    id: str
    name: str
    mode: SessionMode
    status: SessionStatus
    spot_sessions: Tuple[SpotSession, ...]
    start_time: datetime
    end_time: Optional[datetime] = None
    piece_id: Optional[str] = None
    user_id: Optional[str] = None
    elapsed_seconds: int = 0

    def __post_init__(self):
        normalize_datetimes(self, "start_time", "end_time")

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    @property
    def completed_spots(self) -> Tuple[SpotSession, ...]:
        return tuple(s for s in self.spot_sessions if s.is_completed)

    @property
    def completion_percentage(self) -> float:
        """Share of queue entries with a recorded result (0.0-1.0)."""
        if not self.spot_sessions:
            return 0.0
        return len(self.completed_spots) / len(self.spot_sessions)

    @property
    def success_rate(self) -> float:
        """Share of completed entries rated good or excellent (0.0-1.0)."""
        completed = self.completed_spots
        if not completed:
            return 0.0
        return sum(1 for s in completed if s.result.is_success) / len(completed)
