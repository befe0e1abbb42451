"""
Scheduling Engine - due-ness, urgency and queue ordering for practice spots.

All methods are static and pure: they take spots and a reference time and
never touch the store, so the same input always yields the same queue.

Urgency Score:
-------------
    urgency = priority_weight * URGENCY_PRIORITY_SCALE
            + overdue_days * URGENCY_OVERDUE_PER_DAY
            + (1 - success_ratio) * URGENCY_FAILURE_WEIGHT

- priority_weight: critical=4, high=3, medium=2, low=1
- overdue_days: days since next_due, 0 when not yet due
- success_ratio: success_count / practice_count (0 for unpractised spots)

Ties are broken by earliest next_due, then earliest created_at, then id,
which makes the ordering total.

Mode Filters:
------------
- smart: due spots; all spots when nothing is due
- critical: critical priority or red colour, any due date
- balanced: medium priority or yellow/blue colour
- maintenance: green colour or mastered readiness, due only
- warmup: up to WARMUP_SIZE low-priority or mastered spots, any due date
- review: readiness level review

Session Budget:
--------------
Ordered spots fill the queue until the planned time reaches the target
duration or the spot cap is hit (checked before each spot is added).
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from config import Config
from core.dto import (
    ReadinessLevel,
    SessionMode,
    Spot,
    SpotColor,
    SpotPriority,
    as_utc,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0

# Minutes added to the base practice time, per colour and readiness.
_COLOR_TIME_ADJUST = {
    SpotColor.RED: 4,
    SpotColor.YELLOW: 2,
    SpotColor.GREEN: 1,
    SpotColor.BLUE: -1,
}
_READINESS_TIME_ADJUST = {
    ReadinessLevel.NEW_SPOT: 3,
    ReadinessLevel.LEARNING: 2,
    ReadinessLevel.REVIEW: 0,
    ReadinessLevel.MASTERED: -2,
}


class SchedulingEngine:
    """Pure scheduling functions.

    Usage:
        queue = SchedulingEngine.build_queue(spots, SessionMode.SMART, now)
        spot = SchedulingEngine.next_due_spot(spots, now)
    """

    @staticmethod
    def is_due(spot: Spot, now: datetime) -> bool:
        """A spot is due once its next_due timestamp has passed."""
        return as_utc(spot.next_due) <= as_utc(now)

    @staticmethod
    def overdue_days(spot: Spot, now: datetime) -> float:
        """Days past next_due, clamped at 0."""
        delta = (as_utc(now) - as_utc(spot.next_due)).total_seconds()
        return max(0.0, delta / SECONDS_PER_DAY)

    @staticmethod
    def urgency_score(spot: Spot, now: datetime) -> float:
        """Weighted urgency of a spot at ``now`` (higher = practise sooner)."""
        priority_weight = Config.PRIORITY_WEIGHTS[spot.priority.value]
        return (
            priority_weight * Config.URGENCY_PRIORITY_SCALE
            + SchedulingEngine.overdue_days(spot, now) * Config.URGENCY_OVERDUE_PER_DAY
            + (1.0 - spot.success_ratio) * Config.URGENCY_FAILURE_WEIGHT
        )

    @staticmethod
    def sort_key(spot: Spot, now: datetime) -> Tuple[float, datetime, datetime, str]:
        """Total ordering key: urgency desc, next_due asc, created_at asc, id."""
        return (
            -SchedulingEngine.urgency_score(spot, now),
            as_utc(spot.next_due),
            as_utc(spot.created_at),
            spot.id,
        )

    @staticmethod
    def order_by_urgency(spots: Iterable[Spot], now: datetime) -> List[Spot]:
        return sorted(spots, key=lambda s: SchedulingEngine.sort_key(s, now))

    @staticmethod
    def filter_for_mode(spots: Iterable[Spot], mode: SessionMode, now: datetime) -> List[Spot]:
        """Select the spots eligible for a session mode (unordered).

        Args:
            spots: Candidate spots
            mode: Session mode
            now: Reference time for due checks

        Returns:
            Eligible spots. Warmup is not truncated here; see build_queue().
        """
        active = [s for s in spots if s.is_active]
        is_due = SchedulingEngine.is_due

        if mode == SessionMode.SMART:
            due = [s for s in active if is_due(s, now)]
            return due if due else active
        if mode == SessionMode.CRITICAL:
            return [
                s for s in active
                if s.priority == SpotPriority.CRITICAL or s.color == SpotColor.RED
            ]
        if mode == SessionMode.BALANCED:
            return [
                s for s in active
                if s.priority == SpotPriority.MEDIUM
                or s.color in (SpotColor.YELLOW, SpotColor.BLUE)
            ]
        if mode == SessionMode.MAINTENANCE:
            return [
                s for s in active
                if is_due(s, now)
                and (s.color == SpotColor.GREEN or s.readiness_level == ReadinessLevel.MASTERED)
            ]
        if mode == SessionMode.WARMUP:
            return [
                s for s in active
                if s.priority == SpotPriority.LOW or s.readiness_level == ReadinessLevel.MASTERED
            ]
        if mode == SessionMode.REVIEW:
            return [s for s in active if s.readiness_level == ReadinessLevel.REVIEW]
        raise ValueError(f"Unknown session mode: {mode}")

    @staticmethod
    def build_queue(
        spots: Iterable[Spot],
        mode: SessionMode,
        now: datetime,
        target_seconds: Optional[int] = None,
        max_spots: Optional[int] = None,
        seconds_per_spot: Optional[int] = None,
    ) -> List[str]:
        """Build the ordered spot-id queue for a session.

        Spots are taken in urgency order until the planned time reaches
        ``target_seconds`` or the queue holds ``max_spots``. The budget is
        checked before each spot is added, so the spot that crosses the
        budget is still included. Warmup is always capped at WARMUP_SIZE.

        Args:
            spots: Candidate spots
            mode: Session mode
            now: Reference time
            target_seconds: Planned session length; None for no time budget
            max_spots: Maximum queue length; None for no cap
            seconds_per_spot: Planned time per spot; None uses each spot's
                recommended practice time

        Returns:
            Spot ids. An empty result is a valid outcome ("nothing to
            practice"), not an error.
        """
        spots = list(spots)
        eligible = SchedulingEngine.filter_for_mode(spots, mode, now)
        ordered = SchedulingEngine.order_by_urgency(eligible, now)

        if mode == SessionMode.WARMUP:
            max_spots = Config.WARMUP_SIZE if max_spots is None else min(max_spots, Config.WARMUP_SIZE)

        queue: List[str] = []
        planned = 0
        for spot in ordered:
            if target_seconds is not None and planned >= target_seconds:
                break
            if max_spots is not None and len(queue) >= max_spots:
                break
            queue.append(spot.id)
            if seconds_per_spot is None:
                planned += SchedulingEngine.recommended_practice_seconds(spot)
            else:
                planned += seconds_per_spot

        logger.debug(
            f"Built {mode.value} queue: {len(queue)} of {len(spots)} spots selected "
            f"({planned}s planned)"
        )
        return queue

    @staticmethod
    def next_due_spot(spots: Iterable[Spot], now: datetime) -> Optional[Spot]:
        """The most urgent due spot, or None when nothing is due."""
        due = [s for s in spots if s.is_active and SchedulingEngine.is_due(s, now)]
        if not due:
            return None
        return SchedulingEngine.order_by_urgency(due, now)[0]

    # ==================== Practice time heuristics ====================

    @staticmethod
    def spot_difficulty(spot: Spot) -> int:
        """Difficulty 1-5 from the historical failure rate (3 when unpractised)."""
        if spot.practice_count == 0:
            return 3
        failure_rate = spot.failure_count / spot.practice_count
        if failure_rate > 0.7:
            return 5
        if failure_rate > 0.5:
            return 4
        if failure_rate > 0.3:
            return 3
        if failure_rate > 0.1:
            return 2
        return 1

    @staticmethod
    def recommended_practice_seconds(spot: Spot) -> int:
        """Suggested time to allocate to a spot in a session.

        Starts at 3 + difficulty minutes, adjusts for colour, readiness and
        success history, and is clamped to [MIN_PRACTICE_MINUTES, MAX_PRACTICE_MINUTES].
        """
        minutes = 3 + SchedulingEngine.spot_difficulty(spot)
        minutes += _COLOR_TIME_ADJUST[spot.color]
        minutes += _READINESS_TIME_ADJUST[spot.readiness_level]

        if spot.practice_count > 0:
            if spot.success_ratio < 0.4:
                minutes += 3  # Struggling spots need more time
            elif spot.success_ratio > 0.8:
                minutes -= 1

        minutes = max(Config.MIN_PRACTICE_MINUTES, min(Config.MAX_PRACTICE_MINUTES, minutes))
        return minutes * 60
