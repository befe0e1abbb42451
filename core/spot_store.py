"""
SpotStore - authoritative access to practice spots and pieces.

Thin layer over a SpotRepository that owns the lookup rules the rest of the
core relies on: a missing spot is a store desync and raises SpotNotFoundError,
and deleting a piece removes the spots it owns.

Usage:
    from core.spot_store import SpotStore
    from storage.memory import InMemoryRepository

    store = SpotStore(InMemoryRepository())
    store.upsert_piece(piece)
    store.upsert_spot(spot)
    due = store.get_spots(piece_id=piece.id)
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from core.dto import Piece, Spot
from core.errors import SpotNotFoundError
from core.ports import SpotRepository

logger = logging.getLogger(__name__)


class SpotStore:
    """Read/write access to spots and pieces."""

    def __init__(self, repository: SpotRepository):
        """
        Initialize spot store.

        Args:
            repository: Backend implementing the SpotRepository protocol
        """
        self.repository = repository

    # =========================================================================
    # Spots
    # =========================================================================

    def get_spots(self, piece_id: Optional[str] = None) -> List[Spot]:
        """Get all spots, or the spots of one piece."""
        return self.repository.get_all_spots(piece_id)

    def get_spot(self, spot_id: str) -> Spot:
        """Get a spot by id.

        Raises:
            SpotNotFoundError: If the spot is not in the store
        """
        spot = self.repository.get_spot(spot_id)
        if spot is None:
            logger.error(f"Spot {spot_id} requested but missing from store")
            raise SpotNotFoundError(spot_id)
        return spot

    def has_spot(self, spot_id: str) -> bool:
        return self.repository.get_spot(spot_id) is not None

    def upsert_spot(self, spot: Spot) -> None:
        self.repository.upsert_spot(spot)
        logger.debug(f"Stored spot {spot.id} ({spot.readiness_level.value}, due {spot.next_due})")

    def delete_spot(self, spot_id: str) -> None:
        """Delete a spot. Only explicit user deletion removes spots."""
        self.repository.delete_spot(spot_id)
        logger.info(f"Deleted spot {spot_id}")

    # =========================================================================
    # Pieces
    # =========================================================================

    def get_pieces(self) -> List[Piece]:
        return self.repository.get_pieces()

    def get_piece(self, piece_id: str) -> Optional[Piece]:
        return self.repository.get_piece(piece_id)

    def upsert_piece(self, piece: Piece) -> None:
        self.repository.upsert_piece(piece)

    def delete_piece(self, piece_id: str) -> None:
        """Delete a piece together with all of its spots."""
        self.repository.delete_piece(piece_id)
        logger.info(f"Deleted piece {piece_id} and its spots")

    def mark_piece_opened(self, piece_id: str, now: datetime) -> None:
        """Set last_opened on a piece (missing pieces are ignored)."""
        piece = self.repository.get_piece(piece_id)
        if piece is None:
            logger.debug(f"Piece {piece_id} not stored; last_opened not updated")
            return
        self.repository.upsert_piece(replace(piece, last_opened=now, updated_at=now))

    def add_practice_time(self, piece_id: str, seconds: int, now: datetime) -> None:
        """Add practised seconds to a piece's total_time_spent."""
        if seconds <= 0:
            return
        piece = self.repository.get_piece(piece_id)
        if piece is None:
            logger.debug(f"Piece {piece_id} not stored; {seconds}s of practice not credited")
            return
        self.repository.upsert_piece(
            replace(piece, total_time_spent=piece.total_time_spent + seconds, updated_at=now)
        )
        logger.debug(f"Credited {seconds}s of practice to piece {piece_id}")
