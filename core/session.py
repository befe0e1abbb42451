"""
Practice Session State Machine.

Explicit state transitions for one practice session. Every operation checks
the transition table first and raises InvalidStateTransitionError when the
operation is not valid for the current state.

States:
    IDLE     : No session loaded
    RUNNING  : Session in progress; ticks accumulate time
    PAUSED   : Session in progress; ticks are ignored
    COMPLETED: Every queued spot has been handled; waiting for finish_session()
    CANCELLED: Stopped early; partial progress already recorded

Transitions:
    IDLE → RUNNING                      start()
    RUNNING ⇄ PAUSED                    pause() / resume()
    RUNNING|PAUSED → COMPLETED          last complete_current_spot() / skip
    RUNNING|PAUSED → CANCELLED          cancel_session()
    COMPLETED|CANCELLED → IDLE          finish_session() / clear()

Timing is driven from outside: the caller delivers one tick per second and
the machine only accumulates it. Cancel, finish and clear notify listeners so
the caller can stop its timer.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence

from core.dto import (
    PracticeSession,
    SessionMode,
    SessionStatus,
    Spot,
    SpotResult,
    SpotSession,
    as_utc,
    utc_now,
)
from core.errors import (
    AlreadyActiveSessionError,
    EmptyQueueError,
    InvalidStateTransitionError,
)
from core.history import SessionHistoryRecorder
from core.result_processor import ResultProcessor
from core.scheduling import SchedulingEngine
from core.spot_store import SpotStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of the machine (the session status, plus IDLE)."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATES: FrozenSet[SessionState] = frozenset({SessionState.RUNNING, SessionState.PAUSED})

_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.RUNNING}),
    SessionState.RUNNING: frozenset({
        SessionState.PAUSED,
        SessionState.COMPLETED,
        SessionState.CANCELLED,
    }),
    SessionState.PAUSED: frozenset({
        SessionState.RUNNING,
        SessionState.COMPLETED,
        SessionState.CANCELLED,
    }),
    SessionState.COMPLETED: frozenset({SessionState.IDLE}),
    SessionState.CANCELLED: frozenset({SessionState.IDLE}),
}


def can_transition(from_state: SessionState, to_state: SessionState) -> bool:
    return to_state in _TRANSITIONS[from_state]


@dataclass(frozen=True)
class SessionProgress:
    """Snapshot of session progress for display."""

    state: SessionState
    session_id: Optional[str] = None
    current_index: int = 0
    total_spots: int = 0
    completed_spots: int = 0
    current_spot_id: Optional[str] = None
    elapsed_seconds: int = 0

    @property
    def fraction(self) -> float:
        if self.total_spots == 0:
            return 0.0
        return self.completed_spots / self.total_spots


Listener = Callable[["PracticeSessionMachine"], None]


class PracticeSessionMachine:
    """Drives one practice session at a time.

    Usage:
        machine = PracticeSessionMachine(store, recorder)
        machine.start(queue, SessionMode.SMART)
        machine.tick()
        machine.complete_current_spot(SpotResult.GOOD)
        ...
        machine.finish_session()
    """

    def __init__(
        self,
        store: SpotStore,
        recorder: SessionHistoryRecorder,
        user_id: Optional[str] = None,
    ):
        """
        Initialize session machine.

        Args:
            store: Spot store used to read and write spots as results come in
            recorder: History recorder for finished and cancelled sessions
            user_id: Owner stamped on created sessions
        """
        self.store = store
        self.recorder = recorder
        self.user_id = user_id
        self._session: Optional[PracticeSession] = None
        self._cursor = 0
        self._listeners: List[Listener] = []

    # ==================== Read-only views ====================

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return SessionState(self._session.status.value)

    @property
    def session(self) -> Optional[PracticeSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def current_index(self) -> int:
        return self._cursor

    @property
    def current_spot_id(self) -> Optional[str]:
        if not self.is_active or self._cursor >= len(self._session.spot_sessions):
            return None
        return self._session.spot_sessions[self._cursor].spot_id

    @property
    def elapsed_seconds(self) -> int:
        return self._session.elapsed_seconds if self._session else 0

    @property
    def results(self) -> Dict[str, SpotResult]:
        """Results recorded so far, by spot id."""
        if self._session is None:
            return {}
        return {s.spot_id: s.result for s in self._session.completed_spots}

    @property
    def progress(self) -> SessionProgress:
        if self._session is None:
            return SessionProgress(state=SessionState.IDLE)
        return SessionProgress(
            state=self.state,
            session_id=self._session.id,
            current_index=self._cursor,
            total_spots=len(self._session.spot_sessions),
            completed_spots=len(self._session.completed_spots),
            current_spot_id=self.current_spot_id,
            elapsed_seconds=self._session.elapsed_seconds,
        )

    # ==================== Observers ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every transition.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    # ==================== Transitions ====================

    def start(
        self,
        queue: Sequence[str],
        mode: SessionMode,
        allocated_time_per_spot: Optional[int] = None,
        now: Optional[datetime] = None,
        piece_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> PracticeSession:
        """Start a session over an ordered queue of spot ids.

        Args:
            queue: Spot ids in practice order
            mode: Mode the queue was built for
            allocated_time_per_spot: Seconds planned per spot; None uses each
                spot's recommended practice time
            now: Start time (defaults to now)
            piece_id: Piece scope, None for the whole library
            name: Display name (defaults to the mode's display name)

        Raises:
            AlreadyActiveSessionError: If a session is running or paused
            InvalidStateTransitionError: If a finished session has not been cleared
            EmptyQueueError: If the queue is empty
            SpotNotFoundError: If a queued spot is missing from the store
        """
        if self.is_active:
            raise AlreadyActiveSessionError(self._session.id)
        self._require({SessionState.IDLE}, "start a session")
        if not queue:
            raise EmptyQueueError()
        if len(set(queue)) != len(queue):
            raise ValueError("Session queue contains duplicate spot ids")

        now = as_utc(now or utc_now())
        spot_sessions = []
        for index, spot_id in enumerate(queue):
            spot = self.store.get_spot(spot_id)
            if allocated_time_per_spot is None:
                allocated = SchedulingEngine.recommended_practice_seconds(spot)
            else:
                allocated = int(allocated_time_per_spot)
            spot_sessions.append(
                SpotSession(
                    spot_id=spot_id,
                    order_index=index,
                    allocated_time=allocated,
                    started_at=now if index == 0 else None,
                )
            )

        self._session = PracticeSession(
            id=PracticeSession.new_id(),
            name=name or mode.display_name,
            mode=mode,
            status=SessionStatus.RUNNING,
            spot_sessions=tuple(spot_sessions),
            start_time=now,
            piece_id=piece_id,
            user_id=self.user_id,
        )
        self._cursor = 0
        if piece_id is not None:
            self.store.mark_piece_opened(piece_id, now)
        logger.info(f"Started {mode.value} session {self._session.id} with {len(queue)} spots")
        self._notify()
        return self._session

    def pause(self) -> None:
        self._require({SessionState.RUNNING}, "pause")
        self._set_status(SessionStatus.PAUSED)
        logger.debug(f"Paused session {self._session.id}")
        self._notify()

    def resume(self) -> None:
        self._require({SessionState.PAUSED}, "resume")
        self._set_status(SessionStatus.RUNNING)
        logger.debug(f"Resumed session {self._session.id}")
        self._notify()

    def tick(self, seconds: int = 1) -> bool:
        """Accumulate elapsed time while running.

        Returns:
            True if time was added, False while paused
        """
        if self.state == SessionState.PAUSED:
            return False
        self._require({SessionState.RUNNING}, "tick")
        if seconds < 0:
            raise ValueError(f"tick seconds must be >= 0, got {seconds}")

        current = self._session.spot_sessions[self._cursor]
        self._replace_current(replace(current, actual_elapsed=current.actual_elapsed + seconds))
        self._session = replace(
            self._session, elapsed_seconds=self._session.elapsed_seconds + seconds
        )
        self._notify()
        return True

    def complete_current_spot(self, result: SpotResult, now: Optional[datetime] = None) -> Spot:
        """Record a result for the current spot and move to the next one.

        The spot is updated through the ResultProcessor and written back to
        the store before the cursor advances. After the last spot the session
        becomes COMPLETED.

        Returns:
            The updated spot

        Raises:
            InvalidStateTransitionError: If no session is running or paused
            SpotNotFoundError: If the current spot is missing from the store
        """
        self._require(ACTIVE_STATES, "complete a spot")
        now = as_utc(now or utc_now())

        current = self._session.spot_sessions[self._cursor]
        spot = self.store.get_spot(current.spot_id)
        updated = ResultProcessor.apply(spot, result, now)
        self.store.upsert_spot(updated)

        self._replace_current(replace(current, result=result, completed_at=now))
        logger.debug(f"Spot {spot.id} completed with {result.value}")
        self._advance(now)
        return updated

    def skip_current_spot(self, now: Optional[datetime] = None) -> None:
        """Move past the current spot without recording a result."""
        self._require(ACTIVE_STATES, "skip a spot")
        now = as_utc(now or utc_now())
        current = self._session.spot_sessions[self._cursor]
        self._replace_current(replace(current, completed_at=now))
        logger.debug(f"Spot {current.spot_id} skipped")
        self._advance(now)

    def cancel_session(self, now: Optional[datetime] = None) -> PracticeSession:
        """Stop the session early and record the partial progress.

        The spot in progress gets no result and its schedule is untouched.
        """
        self._require(ACTIVE_STATES, "cancel")
        now = as_utc(now or utc_now())
        self._set_status(SessionStatus.CANCELLED)
        self._session = replace(self._session, end_time=now)
        self._record(self._session)
        logger.info(
            f"Cancelled session {self._session.id} after "
            f"{len(self._session.completed_spots)} of {len(self._session.spot_sessions)} spots"
        )
        self._notify()
        return self._session

    def finish_session(self) -> PracticeSession:
        """Record a completed session and return to IDLE."""
        self._require({SessionState.COMPLETED}, "finish")
        finished = self._session
        self._record(finished)
        self._reset()
        self._notify()
        return finished

    def clear(self) -> None:
        """Drop a completed or cancelled session and return to IDLE."""
        if self.state == SessionState.IDLE:
            return
        self._require({SessionState.COMPLETED, SessionState.CANCELLED}, "clear")
        if self.state == SessionState.COMPLETED:
            logger.warning(f"Clearing completed session {self._session.id} without recording it")
        self._reset()
        self._notify()

    # ==================== Internals ====================

    def _require(self, allowed, action: str):
        if self.state not in allowed:
            raise InvalidStateTransitionError(self.state.value, action)

    def _set_status(self, status: SessionStatus):
        target = SessionState(status.value)
        if not can_transition(self.state, target):
            raise InvalidStateTransitionError(self.state.value, f"move to {status.value}")
        self._session = replace(self._session, status=status)

    def _record(self, session: PracticeSession):
        """Store the session and credit its practice time to each piece."""
        self.recorder.record(session)
        per_piece: Dict[str, int] = {}
        for entry in session.spot_sessions:
            if entry.actual_elapsed <= 0 or not self.store.has_spot(entry.spot_id):
                continue
            piece_id = self.store.get_spot(entry.spot_id).piece_id
            per_piece[piece_id] = per_piece.get(piece_id, 0) + entry.actual_elapsed
        for piece_id, seconds in per_piece.items():
            self.store.add_practice_time(piece_id, seconds, session.end_time or utc_now())

    def _replace_current(self, spot_session: SpotSession):
        entries = list(self._session.spot_sessions)
        entries[self._cursor] = spot_session
        self._session = replace(self._session, spot_sessions=tuple(entries))

    def _advance(self, now: datetime):
        self._cursor += 1
        if self._cursor >= len(self._session.spot_sessions):
            self._set_status(SessionStatus.COMPLETED)
            self._session = replace(self._session, end_time=now)
            logger.info(f"Session {self._session.id} completed")
        else:
            upcoming = self._session.spot_sessions[self._cursor]
            self._replace_current(replace(upcoming, started_at=now))
        self._notify()

    def _reset(self):
        self._session = None
        self._cursor = 0
