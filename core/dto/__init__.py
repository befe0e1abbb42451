"""Data Transfer Objects for scoreread-core business logic."""

from .session import (
    PracticeSession,
    SessionMode,
    SessionStatus,
    SpotSession,
)
from .spot import (
    COLOR_TABLE,
    Piece,
    ReadinessLevel,
    Spot,
    SpotColor,
    SpotPriority,
    SpotResult,
    as_utc,
    derive_color,
    utc_now,
)

__all__ = [
    # Enums
    "SpotPriority",
    "ReadinessLevel",
    "SpotColor",
    "SpotResult",
    "SessionMode",
    "SessionStatus",
    # Spot DTOs
    "Spot",
    "Piece",
    "COLOR_TABLE",
    "derive_color",
    # Session DTOs
    "SpotSession",
    "PracticeSession",
    # Time helpers
    "utc_now",
    "as_utc",
]
