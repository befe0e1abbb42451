"""Repository protocol for spots, pieces and session history.

Any backend (SQLite, in-memory, a sync service) that implements these
methods can back the SpotStore and the SessionHistoryRecorder. Each call is
a single-record operation; the core never needs cross-record transactions.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from core.dto import Piece, PracticeSession, Spot


class SpotRepository(Protocol):
    """Protocol for spot and session persistence."""

    def get_all_spots(self, piece_id: Optional[str] = None) -> List[Spot]:
        """Return all spots, optionally limited to one piece."""
        ...

    def get_spot(self, spot_id: str) -> Optional[Spot]:
        """Return a spot by id, or None."""
        ...

    def upsert_spot(self, spot: Spot) -> None:
        """Insert or replace a spot."""
        ...

    def delete_spot(self, spot_id: str) -> None:
        """Delete a spot (no-op when absent)."""
        ...

    def get_pieces(self) -> List[Piece]:
        """Return all pieces with their spots."""
        ...

    def get_piece(self, piece_id: str) -> Optional[Piece]:
        """Return a piece with its spots, or None."""
        ...

    def upsert_piece(self, piece: Piece) -> None:
        """Insert or replace piece metadata (spots are stored separately)."""
        ...

    def delete_piece(self, piece_id: str) -> None:
        """Delete a piece and the spots it owns."""
        ...

    def record_session(self, session: PracticeSession) -> None:
        """Append a finished session record."""
        ...

    def get_sessions_since(self, since: datetime) -> List[PracticeSession]:
        """Return recorded sessions started at or after ``since``, oldest first."""
        ...
