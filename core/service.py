"""
PracticeService - Service layer for ScoreRead practice.

Wires the spot store, scheduling engine, session registry and history
recorder behind one facade, so a CLI or web layer only handles input and
output.

Usage:
    service = PracticeService()  # SQLite at Config.DB_PATH
    piece = service.add_piece("Ballade No. 1", "Chopin")
    service.add_spot(piece.id, "Coda", priority=SpotPriority.HIGH)
    session = service.start_practice(SessionMode.SMART)
    service.complete_current_spot(SpotResult.GOOD)
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from config import Config
from core.analytics import PieceAnalytics, PieceSummary
from core.dto import (
    Piece,
    PracticeSession,
    SessionMode,
    Spot,
    SpotPriority,
    SpotResult,
    as_utc,
    utc_now,
)
from core.errors import EmptyQueueError
from core.history import SessionHistoryRecorder, SessionStats
from core.ports import SpotRepository
from core.registry import SessionRegistry
from core.scheduling import SchedulingEngine
from core.session import PracticeSessionMachine, SessionProgress
from core.spot_store import SpotStore

logger = logging.getLogger(__name__)


class PracticeService:
    """Practice operations for a single user.

    Example:
        service = PracticeService(InMemoryRepository(), user_id="alice")
        service.start_practice(SessionMode.WARMUP)
    """

    def __init__(
        self,
        repository: Optional[SpotRepository] = None,
        user_id: Optional[str] = None,
        registry: Optional[SessionRegistry] = None,
    ):
        """Initialize service.

        Args:
            repository: Storage backend. Defaults to the SQLite database at
                Config.DB_PATH (schema created if missing)
            user_id: Session owner. Defaults to Config.DEFAULT_USER_ID
            registry: Shared session registry. A private one is created when
                not provided
        """
        if repository is None:
            from storage.database import Database

            Config.ensure_dirs()
            repository = Database()
            repository.initialize()

        self.repository = repository
        self.user_id = user_id or Config.DEFAULT_USER_ID
        self.store = SpotStore(repository)
        self.recorder = SessionHistoryRecorder(repository)
        self.registry = registry or SessionRegistry(self.store, self.recorder)

    @property
    def machine(self) -> PracticeSessionMachine:
        return self.registry.machine_for(self.user_id)

    # ==================== Library ====================

    def add_piece(
        self,
        title: str,
        composer: str,
        difficulty: int = 3,
        concert_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Piece:
        piece = Piece.create(title, composer, difficulty=difficulty, concert_date=concert_date, now=now)
        self.store.upsert_piece(piece)
        logger.info(f"Added piece '{title}' ({piece.id})")
        return piece

    def add_spot(
        self,
        piece_id: str,
        title: str,
        page_number: int = 1,
        region: Tuple[float, float, float, float] = (0.0, 0.0, 1.0, 1.0),
        priority: SpotPriority = SpotPriority.MEDIUM,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Spot:
        """Add a new spot to a piece.

        Raises:
            ValueError: If the piece does not exist or the region is invalid
        """
        if self.store.get_piece(piece_id) is None:
            raise ValueError(f"Piece {piece_id} not found")
        spot = Spot.create(
            piece_id,
            title,
            page_number=page_number,
            region=region,
            priority=priority,
            description=description,
            now=now,
        )
        self.store.upsert_spot(spot)
        return spot

    def delete_spot(self, spot_id: str) -> None:
        self.store.delete_spot(spot_id)

    def delete_piece(self, piece_id: str) -> None:
        self.store.delete_piece(piece_id)

    def spots(self, piece_id: Optional[str] = None) -> List[Spot]:
        return self.store.get_spots(piece_id)

    def pieces(self) -> List[Piece]:
        return self.store.get_pieces()

    # ==================== Scheduling ====================

    def due_spots(self, piece_id: Optional[str] = None, now: Optional[datetime] = None) -> List[Spot]:
        """Active due spots, most urgent first."""
        now = as_utc(now or utc_now())
        due = [
            s for s in self.store.get_spots(piece_id)
            if s.is_active and SchedulingEngine.is_due(s, now)
        ]
        return SchedulingEngine.order_by_urgency(due, now)

    def next_due_spot(self, piece_id: Optional[str] = None, now: Optional[datetime] = None) -> Optional[Spot]:
        return SchedulingEngine.next_due_spot(self.store.get_spots(piece_id), as_utc(now or utc_now()))

    def build_queue(
        self,
        mode: SessionMode,
        piece_id: Optional[str] = None,
        now: Optional[datetime] = None,
        target_minutes: Optional[int] = None,
        max_spots: Optional[int] = None,
        allocated_time_per_spot: Optional[int] = None,
    ) -> List[str]:
        """Queue for ``mode``, filled up to ``target_minutes`` (Config.SESSION_TARGET_MINUTES by default)."""
        minutes = Config.SESSION_TARGET_MINUTES if target_minutes is None else target_minutes
        return SchedulingEngine.build_queue(
            self.store.get_spots(piece_id),
            mode,
            as_utc(now or utc_now()),
            target_seconds=minutes * 60,
            max_spots=max_spots,
            seconds_per_spot=allocated_time_per_spot,
        )

    # ==================== Session ====================

    def start_practice(
        self,
        mode: SessionMode,
        piece_id: Optional[str] = None,
        now: Optional[datetime] = None,
        allocated_time_per_spot: Optional[int] = None,
        target_minutes: Optional[int] = None,
        max_spots: Optional[int] = None,
    ) -> PracticeSession:
        """Build a queue for ``mode`` and start a session over it.

        Args:
            mode: Session mode
            piece_id: Limit the session to one piece
            now: Start time (defaults to now)
            allocated_time_per_spot: Seconds per spot; None uses each spot's
                recommended time
            target_minutes: Planned session length (defaults to
                Config.SESSION_TARGET_MINUTES)
            max_spots: Maximum number of spots

        Raises:
            EmptyQueueError: If no spot qualifies for the mode
            AlreadyActiveSessionError: If the user already has an active session
        """
        now = as_utc(now or utc_now())
        queue = self.build_queue(
            mode,
            piece_id=piece_id,
            now=now,
            target_minutes=target_minutes,
            max_spots=max_spots,
            allocated_time_per_spot=allocated_time_per_spot,
        )
        if not queue:
            logger.info(f"No spots qualify for {mode.value} practice")
            raise EmptyQueueError(f"No spots available for {mode.display_name}")

        machine = self.registry.start(
            self.user_id,
            queue,
            mode,
            allocated_time_per_spot=allocated_time_per_spot,
            now=now,
            piece_id=piece_id,
        )
        return machine.session

    def current_session(self) -> Optional[PracticeSession]:
        return self.machine.session

    def current_spot(self) -> Optional[Spot]:
        spot_id = self.machine.current_spot_id
        return self.store.get_spot(spot_id) if spot_id else None

    def progress(self) -> SessionProgress:
        return self.machine.progress

    def tick(self, seconds: int = 1) -> bool:
        return self.machine.tick(seconds)

    def pause(self) -> None:
        self.machine.pause()

    def resume(self) -> None:
        self.machine.resume()

    def complete_current_spot(self, result: SpotResult, now: Optional[datetime] = None) -> Spot:
        return self.machine.complete_current_spot(result, now=now)

    def skip_current_spot(self, now: Optional[datetime] = None) -> None:
        self.machine.skip_current_spot(now=now)

    def cancel(self, now: Optional[datetime] = None) -> PracticeSession:
        """Cancel the active session and return the machine to idle."""
        session = self.machine.cancel_session(now=now)
        self.machine.clear()
        return session

    def finish(self) -> PracticeSession:
        return self.machine.finish_session()

    # ==================== Statistics ====================

    def stats(self, since: Optional[datetime] = None, now: Optional[datetime] = None) -> SessionStats:
        today = as_utc(now).date() if now else None
        return self.recorder.get_stats(since=since, today=today)

    def piece_summaries(self, now: Optional[datetime] = None) -> List[PieceSummary]:
        """Summaries of every piece, most urgent first."""
        return PieceAnalytics.rank_pieces(self.store.get_pieces(), as_utc(now or utc_now()))
