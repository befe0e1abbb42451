"""Spot and piece Data Transfer Objects.

These DTOs are the unit the scheduler, result processor and stores exchange.
They are plain frozen dataclasses so the scheduling logic stays independent of
where the data comes from (SQLite, in-memory, a sync backend, ...).

Colour is never stored independently: it is derived from priority and
readiness through ``derive_color``, so a spot's colour cannot drift away from
the values that define it.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_datetimes(instance, *names: str) -> None:
    """Convert the named datetime fields of a frozen dataclass to aware UTC in place."""
    for name in names:
        value = getattr(instance, name)
        if value is not None:
            object.__setattr__(instance, name, as_utc(value))


class SpotPriority(Enum):
    """User-assigned practice priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReadinessLevel(Enum):
    """Mastery stage of a spot, in learning order."""

    NEW_SPOT = "new_spot"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"

    @property
    def rank(self) -> int:
        return _READINESS_ORDER.index(self)

    def advance(self) -> "ReadinessLevel":
        """Next stage, saturating at MASTERED."""
        return _READINESS_ORDER[min(self.rank + 1, len(_READINESS_ORDER) - 1)]

    def regress(self) -> "ReadinessLevel":
        """Previous stage, never below LEARNING (a practised spot is no longer new)."""
        return _READINESS_ORDER[max(self.rank - 1, ReadinessLevel.LEARNING.rank)]


_READINESS_ORDER: List[ReadinessLevel] = [
    ReadinessLevel.NEW_SPOT,
    ReadinessLevel.LEARNING,
    ReadinessLevel.REVIEW,
    ReadinessLevel.MASTERED,
]


class SpotColor(Enum):
    """Display classification derived from priority and readiness."""

    RED = "red"  # Critical, urgent work
    YELLOW = "yellow"  # Active practice
    GREEN = "green"  # Maintenance
    BLUE = "blue"  # Solved


class SpotResult(Enum):
    """Outcome of practising a spot once."""

    FAILED = "failed"
    STRUGGLED = "struggled"
    GOOD = "good"
    EXCELLENT = "excellent"

    @property
    def is_success(self) -> bool:
        return self in (SpotResult.GOOD, SpotResult.EXCELLENT)


# Every (readiness, priority) pair must be listed; tests check coverage.
COLOR_TABLE: Dict[Tuple[ReadinessLevel, SpotPriority], SpotColor] = {
    (ReadinessLevel.NEW_SPOT, SpotPriority.CRITICAL): SpotColor.RED,
    (ReadinessLevel.NEW_SPOT, SpotPriority.HIGH): SpotColor.RED,
    (ReadinessLevel.NEW_SPOT, SpotPriority.MEDIUM): SpotColor.YELLOW,
    (ReadinessLevel.NEW_SPOT, SpotPriority.LOW): SpotColor.YELLOW,
    (ReadinessLevel.LEARNING, SpotPriority.CRITICAL): SpotColor.RED,
    (ReadinessLevel.LEARNING, SpotPriority.HIGH): SpotColor.RED,
    (ReadinessLevel.LEARNING, SpotPriority.MEDIUM): SpotColor.YELLOW,
    (ReadinessLevel.LEARNING, SpotPriority.LOW): SpotColor.YELLOW,
    (ReadinessLevel.REVIEW, SpotPriority.CRITICAL): SpotColor.YELLOW,
    (ReadinessLevel.REVIEW, SpotPriority.HIGH): SpotColor.GREEN,
    (ReadinessLevel.REVIEW, SpotPriority.MEDIUM): SpotColor.GREEN,
    (ReadinessLevel.REVIEW, SpotPriority.LOW): SpotColor.GREEN,
    (ReadinessLevel.MASTERED, SpotPriority.CRITICAL): SpotColor.BLUE,
    (ReadinessLevel.MASTERED, SpotPriority.HIGH): SpotColor.BLUE,
    (ReadinessLevel.MASTERED, SpotPriority.MEDIUM): SpotColor.BLUE,
    (ReadinessLevel.MASTERED, SpotPriority.LOW): SpotColor.BLUE,
}


def derive_color(priority: SpotPriority, readiness: ReadinessLevel) -> SpotColor:
    """Look up the display colour for a priority/readiness pair."""
    return COLOR_TABLE[(readiness, priority)]


@dataclass(frozen=True)
class Spot:
    """An annotated region of a score flagged for focused practice.

    Attributes:
        id: Unique identifier
        piece_id: Piece the spot belongs to
        title: Short label shown on the score
        page_number: 1-based page of the region
        x, y, width, height: Region relative to the page (0.0-1.0)
        priority: User-assigned priority
        readiness_level: Current mastery stage
        created_at: Creation timestamp (immutable)
        updated_at: Last modification timestamp
        next_due: When the spot next becomes eligible for scheduling
        practice_count: Total practice runs
        success_count: Runs rated good or excellent
        failure_count: Runs rated failed or struggled
        ease_factor: SM-2 easiness factor (1.3-2.5)
        interval_days: Current scheduling interval in days
        repetitions: Consecutive successful runs
        recent_results: Most recent outcomes, oldest first
        is_active: Inactive spots are never scheduled
    """

    id: str
    piece_id: str
    title: str
    page_number: int
    x: float
    y: float
    width: float
    height: float
    priority: SpotPriority
    readiness_level: ReadinessLevel
    created_at: datetime
    updated_at: datetime
    next_due: datetime
    description: Optional[str] = None
    notes: Optional[str] = None
    practice_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    ease_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0
    last_practiced: Optional[datetime] = None
    last_result: Optional[SpotResult] = None
    recent_results: Tuple[SpotResult, ...] = ()
    is_active: bool = True

    def __post_init__(self):
        normalize_datetimes(self, "created_at", "updated_at", "next_due", "last_practiced")
        if self.page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {self.page_number}")
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.practice_count < 0 or self.success_count < 0 or self.failure_count < 0:
            raise ValueError("practice counters cannot be negative")
        if self.success_count > self.practice_count:
            raise ValueError(
                f"success_count ({self.success_count}) exceeds practice_count ({self.practice_count})"
            )
        if self.next_due < self.created_at:
            raise ValueError("next_due cannot be earlier than created_at")

    @classmethod
    def create(
        cls,
        piece_id: str,
        title: str,
        page_number: int = 1,
        region: Tuple[float, float, float, float] = (0.0, 0.0, 1.0, 1.0),
        priority: SpotPriority = SpotPriority.MEDIUM,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "Spot":
        """Create a brand new spot that is due immediately."""
        now = as_utc(now or utc_now())
        x, y, width, height = region
        return cls(
            id=str(uuid.uuid4()),
            piece_id=piece_id,
            title=title,
            description=description,
            page_number=page_number,
            x=x,
            y=y,
            width=width,
            height=height,
            priority=priority,
            readiness_level=ReadinessLevel.NEW_SPOT,
            created_at=now,
            updated_at=now,
            next_due=now,
        )

    @property
    def color(self) -> SpotColor:
        return derive_color(self.priority, self.readiness_level)

    @property
    def success_ratio(self) -> float:
        """Historical success ratio (0.0 when never practised)."""
        if self.practice_count == 0:
            return 0.0
        return self.success_count / self.practice_count


@dataclass(frozen=True)
class Piece:
    """A musical score owning an ordered collection of spots."""

    id: str
    title: str
    composer: str
    difficulty: int
    created_at: datetime
    updated_at: datetime
    concert_date: Optional[datetime] = None
    last_opened: Optional[datetime] = None
    project_id: Optional[str] = None
    tags: Tuple[str, ...] = ()
    total_time_spent: int = 0  # seconds
    is_favorite: bool = False
    spots: Tuple[Spot, ...] = field(default=(), compare=False)

    def __post_init__(self):
        normalize_datetimes(self, "created_at", "updated_at", "concert_date", "last_opened")
        if not 1 <= self.difficulty <= 5:
            raise ValueError(f"difficulty must be within [1, 5], got {self.difficulty}")

    @classmethod
    def create(
        cls,
        title: str,
        composer: str,
        difficulty: int = 3,
        concert_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> "Piece":
        now = as_utc(now or utc_now())
        return cls(
            id=str(uuid.uuid4()),
            title=title,
            composer=composer,
            difficulty=difficulty,
            concert_date=concert_date,
            created_at=now,
            updated_at=now,
        )
