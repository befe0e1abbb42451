"""
Session history - append-only record of finished practice sessions.

Provides:
- SessionHistoryRecorder.record(): persist a completed or cancelled session
- SessionHistoryRecorder.get_stats(): totals, result distribution and streaks
- calculate_streaks(): pure streak calculation over practice days

Streak Rules:
------------
A calendar day counts when at least one session was recorded on it. The
current streak is the run of consecutive practice days ending today, or
ending yesterday when nothing has been recorded yet today. A day skipped
entirely resets the streak to 0.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from core.dto import PracticeSession, SessionStatus, SpotResult, as_utc, utc_now
from core.errors import InvalidStateTransitionError
from core.ports import SpotRepository

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    """Aggregated practice statistics over recorded sessions."""

    total_sessions: int = 0
    completed_sessions: int = 0
    cancelled_sessions: int = 0
    total_practice_seconds: int = 0
    spots_worked: int = 0  # distinct spots with at least one result
    results: Dict[str, int] = field(default_factory=lambda: {r.value: 0 for r in SpotResult})
    current_streak: int = 0
    longest_streak: int = 0

    @property
    def total_results(self) -> int:
        return sum(self.results.values())

    @property
    def success_rate(self) -> float:
        """Share of results rated good or excellent (0.0-1.0)."""
        total = self.total_results
        if total == 0:
            return 0.0
        good = self.results[SpotResult.GOOD.value] + self.results[SpotResult.EXCELLENT.value]
        return good / total


def calculate_streaks(practice_days: Iterable[date], today: date) -> Tuple[int, int]:
    """Calculate (current_streak, longest_streak) from practice days.

    Args:
        practice_days: Calendar days with at least one recorded session
        today: Reference day

    Returns:
        Tuple of current and longest streak in days

    Example:
        >>> d = date(2025, 3, 10)
        >>> calculate_streaks([d, d - timedelta(days=1), d - timedelta(days=3)], d)
        (2, 2)
    """
    days: Set[date] = {d for d in practice_days if d <= today}
    if not days:
        return 0, 0

    longest = 0
    run = 0
    previous: Optional[date] = None
    for day in sorted(days):
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day

    # Today without a session does not break the streak yet
    anchor = today if today in days else today - timedelta(days=1)
    current = 0
    while anchor in days:
        current += 1
        anchor -= timedelta(days=1)

    return current, longest


class SessionHistoryRecorder:
    """Persists finished sessions and computes statistics from them.

    Usage:
        recorder = SessionHistoryRecorder(repository)
        recorder.record(session)
        stats = recorder.get_stats(since=now - timedelta(days=30))
    """

    def __init__(self, repository: SpotRepository):
        """
        Initialize recorder.

        Args:
            repository: Backend implementing record_session/get_sessions_since
        """
        self.repository = repository

    def record(self, session: PracticeSession) -> None:
        """Persist a completed or cancelled session.

        Raises:
            InvalidStateTransitionError: If the session is still running or paused
            ValueError: If a session with the same id has already been recorded
        """
        if not session.status.is_terminal:
            raise InvalidStateTransitionError(session.status.value, "record session")

        self.repository.record_session(session)
        logger.info(
            f"Recorded {session.status.value} session {session.id}: "
            f"{len(session.completed_spots)}/{len(session.spot_sessions)} spots, "
            f"{session.elapsed_seconds}s"
        )

    def get_sessions_since(self, since: datetime) -> List[PracticeSession]:
        return self.repository.get_sessions_since(as_utc(since))

    def get_stats(
        self,
        since: Optional[datetime] = None,
        today: Optional[date] = None,
    ) -> SessionStats:
        """Compute statistics over sessions recorded since ``since``.

        Args:
            since: Start of the window (defaults to the beginning of time)
            today: Reference day for the current streak (defaults to today, UTC)

        Returns:
            SessionStats
        """
        since = since or datetime.min
        today = today or utc_now().date()
        sessions = self.get_sessions_since(since)
        return self.summarize(sessions, today)

    @staticmethod
    def summarize(sessions: Iterable[PracticeSession], today: date) -> SessionStats:
        """Pure aggregation of session records into SessionStats."""
        stats = SessionStats()
        spot_ids: Set[str] = set()
        practice_days: Set[date] = set()

        for session in sessions:
            stats.total_sessions += 1
            if session.status == SessionStatus.COMPLETED:
                stats.completed_sessions += 1
            elif session.status == SessionStatus.CANCELLED:
                stats.cancelled_sessions += 1
            stats.total_practice_seconds += session.elapsed_seconds
            practice_days.add(as_utc(session.start_time).date())

            for spot_session in session.completed_spots:
                spot_ids.add(spot_session.spot_id)
                stats.results[spot_session.result.value] += 1

        stats.spots_worked = len(spot_ids)
        stats.current_streak, stats.longest_streak = calculate_streaks(practice_days, today)
        return stats
