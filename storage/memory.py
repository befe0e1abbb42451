"""
In-memory repository for ScoreRead.
Implements the SpotRepository protocol with plain dictionaries; used by tests
and by callers that persist elsewhere.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from core.dto import Piece, PracticeSession, Spot, as_utc


class InMemoryRepository:
    """Dictionary-backed spot, piece and session storage."""

    def __init__(self):
        self._pieces: Dict[str, Piece] = {}
        self._spots: Dict[str, Spot] = {}
        self._sessions: Dict[str, PracticeSession] = {}

    # Spot operations
    def get_all_spots(self, piece_id: Optional[str] = None) -> List[Spot]:
        spots = [
            s for s in self._spots.values()
            if piece_id is None or s.piece_id == piece_id
        ]
        return sorted(spots, key=lambda s: (as_utc(s.created_at), s.id))

    def get_spot(self, spot_id: str) -> Optional[Spot]:
        return self._spots.get(spot_id)

    def upsert_spot(self, spot: Spot) -> None:
        self._spots[spot.id] = spot

    def delete_spot(self, spot_id: str) -> None:
        self._spots.pop(spot_id, None)

    # Piece operations
    def get_pieces(self) -> List[Piece]:
        pieces = sorted(self._pieces.values(), key=lambda p: (as_utc(p.created_at), p.id))
        return [self._with_spots(p) for p in pieces]

    def get_piece(self, piece_id: str) -> Optional[Piece]:
        piece = self._pieces.get(piece_id)
        return self._with_spots(piece) if piece else None

    def upsert_piece(self, piece: Piece) -> None:
        self._pieces[piece.id] = replace(piece, spots=())

    def delete_piece(self, piece_id: str) -> None:
        self._pieces.pop(piece_id, None)
        for spot_id in [s.id for s in self._spots.values() if s.piece_id == piece_id]:
            del self._spots[spot_id]

    def _with_spots(self, piece: Piece) -> Piece:
        return replace(piece, spots=tuple(self.get_all_spots(piece.id)))

    # Session operations
    def record_session(self, session: PracticeSession) -> None:
        if session.id in self._sessions:
            raise ValueError(f"Session {session.id} already recorded")
        self._sessions[session.id] = session

    def get_sessions_since(self, since: datetime) -> List[PracticeSession]:
        since = as_utc(since)
        sessions = [s for s in self._sessions.values() if as_utc(s.start_time) >= since]
        return sorted(sessions, key=lambda s: as_utc(s.start_time))
