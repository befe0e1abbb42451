"""
Unit tests for SchedulingEngine.

Covers due-ness, urgency scoring, mode filters, queue ordering and the
practice time heuristic. All tests are pure (no store access).
"""

import os
import random
import sys
from dataclasses import replace
from datetime import timedelta

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config import Config
from core.dto import ReadinessLevel, SessionMode, SpotPriority
from core.scheduling import SchedulingEngine


# ============================================================================
# Test is_due() / urgency_score()
# ============================================================================


def test_is_due_boundary(make_spot, now):
    spot = replace(make_spot(), next_due=now)
    assert SchedulingEngine.is_due(spot, now)
    assert not SchedulingEngine.is_due(spot, now - timedelta(seconds=1))


def test_urgency_score_unpractised_not_overdue(make_spot, now):
    spot = replace(make_spot(priority=SpotPriority.MEDIUM), next_due=now)
    # medium (2) * 10 + 0 overdue + (1 - 0) * 5
    assert SchedulingEngine.urgency_score(spot, now) == pytest.approx(25.0)


def test_urgency_score_overdue_with_history(make_spot, now):
    spot = make_spot(
        priority=SpotPriority.CRITICAL,
        practice_count=4,
        success_count=2,
        failure_count=2,
    )
    spot = replace(spot, next_due=now - timedelta(days=2))
    # critical (4) * 10 + 2 days * 2 + (1 - 0.5) * 5
    assert SchedulingEngine.urgency_score(spot, now) == pytest.approx(46.5)


def test_urgency_prefers_lower_success(make_spot, now):
    weak = make_spot(practice_count=10, success_count=2, failure_count=8, next_due=now)
    strong = make_spot(practice_count=10, success_count=9, failure_count=1, next_due=now)
    assert SchedulingEngine.urgency_score(weak, now) > SchedulingEngine.urgency_score(strong, now)


# ============================================================================
# Test ordering
# ============================================================================


def test_ties_broken_by_next_due_then_creation(make_spot, now):
    later_due = make_spot(next_due=now + timedelta(days=2))
    sooner_due = make_spot(next_due=now + timedelta(days=1))
    older = make_spot(created_at=now - timedelta(days=9), next_due=now + timedelta(days=3))
    newer = make_spot(created_at=now - timedelta(days=2), next_due=now + timedelta(days=3))

    ordered = SchedulingEngine.order_by_urgency([newer, later_due, older, sooner_due], now)
    assert [s.id for s in ordered] == [sooner_due.id, later_due.id, older.id, newer.id]


def test_ordering_is_deterministic(make_spot, now):
    """Same input in any order yields the same queue."""
    spots = [
        make_spot(priority=priority, next_due=now - timedelta(hours=hours))
        for priority in SpotPriority
        for hours in (0, 0, 5, 30)
    ]
    expected = SchedulingEngine.build_queue(spots, SessionMode.SMART, now)

    rng = random.Random(42)
    for _ in range(10):
        shuffled = spots[:]
        rng.shuffle(shuffled)
        assert SchedulingEngine.build_queue(shuffled, SessionMode.SMART, now) == expected


# ============================================================================
# Test mode filters
# ============================================================================


class TestModeFilters:
    def test_smart_includes_due_only(self, make_spot, now):
        due = make_spot()
        future = make_spot(next_due=now + timedelta(hours=1))

        queue = SchedulingEngine.build_queue([due, future], SessionMode.SMART, now)
        assert queue == [due.id]

    def test_smart_falls_back_to_all_when_nothing_due(self, make_spot, now):
        low = make_spot(priority=SpotPriority.LOW, next_due=now + timedelta(days=1))
        high = make_spot(priority=SpotPriority.HIGH, next_due=now + timedelta(days=3))

        queue = SchedulingEngine.build_queue([low, high], SessionMode.SMART, now)
        assert queue == [high.id, low.id]

    def test_critical_ignores_due_date(self, make_spot, now):
        critical_blue = make_spot(
            priority=SpotPriority.CRITICAL,
            readiness=ReadinessLevel.MASTERED,
            next_due=now + timedelta(days=30),
        )
        high_red = make_spot(priority=SpotPriority.HIGH, readiness=ReadinessLevel.LEARNING)
        medium_yellow = make_spot(priority=SpotPriority.MEDIUM)

        queue = SchedulingEngine.build_queue(
            [critical_blue, high_red, medium_yellow], SessionMode.CRITICAL, now
        )
        assert set(queue) == {critical_blue.id, high_red.id}

    def test_balanced(self, make_spot, now):
        low_yellow = make_spot(priority=SpotPriority.LOW)
        high_green = make_spot(priority=SpotPriority.HIGH, readiness=ReadinessLevel.REVIEW)
        high_blue = make_spot(priority=SpotPriority.HIGH, readiness=ReadinessLevel.MASTERED)
        critical_red = make_spot(priority=SpotPriority.CRITICAL)
        medium_green = make_spot(priority=SpotPriority.MEDIUM, readiness=ReadinessLevel.REVIEW)

        queue = SchedulingEngine.build_queue(
            [low_yellow, high_green, high_blue, critical_red, medium_green],
            SessionMode.BALANCED,
            now,
        )
        assert set(queue) == {low_yellow.id, high_blue.id, medium_green.id}

    def test_maintenance_due_only(self, make_spot, now):
        green_due = make_spot(readiness=ReadinessLevel.REVIEW)
        green_future = make_spot(readiness=ReadinessLevel.REVIEW, next_due=now + timedelta(days=2))
        mastered_due = make_spot(priority=SpotPriority.LOW, readiness=ReadinessLevel.MASTERED)
        learning_due = make_spot()

        queue = SchedulingEngine.build_queue(
            [green_due, green_future, mastered_due, learning_due], SessionMode.MAINTENANCE, now
        )
        assert set(queue) == {green_due.id, mastered_due.id}

    def test_warmup_is_capped(self, make_spot, now):
        spots = [
            make_spot(priority=SpotPriority.LOW, next_due=now + timedelta(days=i))
            for i in range(7)
        ]
        spots.append(make_spot(priority=SpotPriority.HIGH))

        queue = SchedulingEngine.build_queue(spots, SessionMode.WARMUP, now)
        assert len(queue) == 5
        assert all(spot_id != spots[-1].id for spot_id in queue)

    def test_review(self, make_spot, now):
        review = make_spot(readiness=ReadinessLevel.REVIEW, next_due=now + timedelta(days=5))
        learning = make_spot()

        assert SchedulingEngine.build_queue([review, learning], SessionMode.REVIEW, now) == [review.id]

    def test_inactive_spots_never_scheduled(self, make_spot, now):
        inactive = make_spot(priority=SpotPriority.CRITICAL, is_active=False)
        for mode in SessionMode:
            assert inactive.id not in SchedulingEngine.build_queue([inactive], mode, now)

    def test_empty_input_gives_empty_queue_for_every_mode(self, now):
        for mode in SessionMode:
            assert SchedulingEngine.build_queue([], mode, now) == []


# ============================================================================
# Test session budget
# ============================================================================


class TestSessionBudget:
    @pytest.fixture
    def overdue_spots(self, make_spot, now):
        # Same colour and readiness (600s each), most overdue first
        return [make_spot(next_due=now - timedelta(days=d)) for d in (3, 2, 1)]

    def test_spot_crossing_target_is_included(self, overdue_spots, now):
        queue = SchedulingEngine.build_queue(overdue_spots, SessionMode.SMART, now, target_seconds=1000)
        assert queue == [overdue_spots[0].id, overdue_spots[1].id]

    def test_target_reached_exactly_stops(self, overdue_spots, now):
        at_target = SchedulingEngine.build_queue(overdue_spots, SessionMode.SMART, now, target_seconds=1200)
        past_target = SchedulingEngine.build_queue(overdue_spots, SessionMode.SMART, now, target_seconds=1201)
        assert len(at_target) == 2
        assert past_target == [s.id for s in overdue_spots]

    def test_max_spots_keeps_most_urgent(self, overdue_spots, now):
        queue = SchedulingEngine.build_queue(
            list(reversed(overdue_spots)), SessionMode.SMART, now, max_spots=1
        )
        assert queue == [overdue_spots[0].id]

    def test_seconds_per_spot_overrides_recommendation(self, overdue_spots, now):
        queue = SchedulingEngine.build_queue(
            overdue_spots, SessionMode.SMART, now, target_seconds=1000, seconds_per_spot=300
        )
        assert len(queue) == 3

    def test_zero_target_gives_empty_queue(self, overdue_spots, now):
        assert SchedulingEngine.build_queue(overdue_spots, SessionMode.SMART, now, target_seconds=0) == []

    def test_warmup_cap_cannot_be_raised(self, make_spot, now):
        spots = [make_spot(priority=SpotPriority.LOW) for _ in range(8)]
        queue = SchedulingEngine.build_queue(spots, SessionMode.WARMUP, now, max_spots=10)
        assert len(queue) == Config.WARMUP_SIZE


def test_next_due_spot(make_spot, now):
    future = make_spot(priority=SpotPriority.CRITICAL, next_due=now + timedelta(days=1))
    due = make_spot(priority=SpotPriority.LOW)

    assert SchedulingEngine.next_due_spot([future, due], now).id == due.id
    assert SchedulingEngine.next_due_spot([future], now) is None


# ============================================================================
# Test practice time heuristic
# ============================================================================


def test_spot_difficulty_from_failure_rate(make_spot):
    assert SchedulingEngine.spot_difficulty(make_spot()) == 3
    assert SchedulingEngine.spot_difficulty(make_spot(practice_count=10, failure_count=8)) == 5
    assert SchedulingEngine.spot_difficulty(
        make_spot(practice_count=10, success_count=10)
    ) == 1


def test_recommended_practice_seconds(make_spot):
    # 3 + difficulty 3 + yellow 2 + learning 2 = 10 minutes
    assert SchedulingEngine.recommended_practice_seconds(make_spot()) == 600

    mastered = make_spot(
        priority=SpotPriority.LOW,
        readiness=ReadinessLevel.MASTERED,
        practice_count=10,
        success_count=10,
    )
    assert SchedulingEngine.recommended_practice_seconds(mastered) == 180  # clamped to minimum

    struggling = make_spot(
        priority=SpotPriority.HIGH,
        practice_count=10,
        success_count=2,
        failure_count=8,
    )
    assert SchedulingEngine.recommended_practice_seconds(struggling) == 900  # clamped to maximum
