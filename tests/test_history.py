"""
Tests for SessionHistoryRecorder and streak calculation.
"""

import os
import sys
from datetime import date, datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.dto import PracticeSession, SessionMode, SessionStatus, SpotResult, SpotSession
from core.errors import InvalidStateTransitionError
from core.history import SessionHistoryRecorder, calculate_streaks


def _session(session_id, start, status=SessionStatus.COMPLETED, results=(SpotResult.GOOD,), elapsed=600):
    return PracticeSession(
        id=session_id,
        name="Smart Practice",
        mode=SessionMode.SMART,
        status=status,
        spot_sessions=tuple(
            SpotSession(f"spot-{i}", i, 300, actual_elapsed=elapsed // max(len(results), 1), result=r)
            for i, r in enumerate(results)
        ),
        start_time=start,
        end_time=start + timedelta(seconds=elapsed),
        elapsed_seconds=elapsed,
    )


# ============================================================================
# Test calculate_streaks()
# ============================================================================


class TestStreaks:
    TODAY = date(2025, 3, 10)

    def _days(self, *offsets):
        return [self.TODAY - timedelta(days=o) for o in offsets]

    def test_no_practice(self):
        assert calculate_streaks([], self.TODAY) == (0, 0)

    def test_streak_ending_today(self):
        assert calculate_streaks(self._days(0, 1, 2), self.TODAY) == (3, 3)

    def test_streak_ending_yesterday_still_counts(self):
        assert calculate_streaks(self._days(1, 2), self.TODAY) == (2, 2)

    def test_skipped_day_resets_current(self):
        assert calculate_streaks(self._days(2, 3, 4, 5), self.TODAY) == (0, 4)

    def test_gap_splits_runs(self):
        days = self._days(0, 1, 3, 4, 5, 6, 10)
        assert calculate_streaks(days, self.TODAY) == (2, 4)

    def test_duplicate_days_counted_once(self):
        days = self._days(0, 0, 1, 1)
        assert calculate_streaks(days, self.TODAY) == (2, 2)

    def test_future_days_ignored(self):
        days = self._days(0) + [self.TODAY + timedelta(days=1)]
        assert calculate_streaks(days, self.TODAY) == (1, 1)


# ============================================================================
# Test SessionHistoryRecorder
# ============================================================================


class TestRecorder:
    def test_record_rejects_active_session(self, recorder, now):
        with pytest.raises(InvalidStateTransitionError):
            recorder.record(_session("s1", now, status=SessionStatus.RUNNING))

    def test_record_is_append_only(self, recorder, now):
        recorder.record(_session("s1", now))
        with pytest.raises(ValueError):
            recorder.record(_session("s1", now, status=SessionStatus.CANCELLED))

    def test_sessions_since_are_oldest_first(self, recorder, now):
        recorder.record(_session("late", now))
        recorder.record(_session("early", now - timedelta(days=2)))
        recorder.record(_session("old", now - timedelta(days=40)))

        recent = recorder.get_sessions_since(now - timedelta(days=30))
        assert [s.id for s in recent] == ["early", "late"]

    def test_stats(self, recorder, now):
        recorder.record(_session("a", now, results=(SpotResult.GOOD, SpotResult.FAILED)))
        recorder.record(_session("b", now - timedelta(days=1), results=(SpotResult.EXCELLENT,)))
        recorder.record(
            _session("c", now - timedelta(days=3), status=SessionStatus.CANCELLED, results=(), elapsed=120)
        )

        stats = recorder.get_stats(today=now.date())

        assert stats.total_sessions == 3
        assert stats.completed_sessions == 2
        assert stats.cancelled_sessions == 1
        assert stats.total_practice_seconds == 600 + 600 + 120
        assert stats.results["good"] == 1
        assert stats.results["failed"] == 1
        assert stats.results["excellent"] == 1
        assert stats.total_results == 3
        assert stats.success_rate == pytest.approx(2 / 3)
        assert stats.current_streak == 2
        assert stats.longest_streak == 2

    def test_stats_window(self, recorder, now):
        recorder.record(_session("old", now - timedelta(days=10)))
        recorder.record(_session("new", now))

        stats = recorder.get_stats(since=now - timedelta(days=1), today=now.date())
        assert stats.total_sessions == 1

    def test_empty_stats(self, recorder):
        stats = recorder.get_stats(today=date(2025, 3, 10))
        assert stats.total_sessions == 0
        assert stats.success_rate == 0.0
        assert stats.current_streak == 0


def test_summarize_uses_utc_day():
    """A session late in the evening west of UTC counts for the next UTC day."""
    start = datetime(2025, 3, 9, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    stats = SessionHistoryRecorder.summarize([_session("s", start)], date(2025, 3, 10))
    assert stats.current_streak == 1
