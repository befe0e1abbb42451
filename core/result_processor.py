"""
Result Processor - applies a practice outcome to a spot's schedule.

The interval curve is a simplified SM-2 (SuperMemo 2) schedule tied to the
spot's readiness level, so that interval length grows monotonically with
mastery.

Outcomes:
--------
- failed: counts as an attempt, retry the same day (FAILED_RETRY_HOURS),
  readiness drops back to learning, repetition streak resets, EF - 0.2
- struggled: counts as an attempt, back within SHORT_INTERVAL_HOURS,
  readiness regresses one step (never below learning), streak resets, EF - 0.15
- good: counts as a success, interval grows SM-2 style, readiness advances
  one step when the recent success ratio is high enough
- excellent: counts as a success, EF + 0.1, readiness always advances one
  step (saturating at mastered), interval gets the EXCELLENT_BONUS

Interval Calculation (successful runs):
--------------------------------------
- repetition 1: 1 day
- repetition 2: 6 days
- repetition > 2: previous_interval × EF

The raw interval is then clamped into the band of the resulting readiness:

    new_spot/learning: 1-2 days
    review:            3-13 days
    mastered:          14-120 days

Example Progression (all excellent, starting from a new spot):
-------------------------------------------------------------
- Run 1: new_spot → learning, 1 day
- Run 2: learning → review, 8 days (6 × 1.3)
- Run 3: review → mastered, 26 days (8 × 2.5 × 1.3)

Colour is not touched here: it is derived from priority and readiness.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from config import Config
from core.dto import ReadinessLevel, Spot, SpotResult, as_utc

logger = logging.getLogger(__name__)


class ResultProcessor:
    """Pure update of a spot's scheduling fields after one practice run.

    Usage:
        updated = ResultProcessor.apply(spot, SpotResult.GOOD, now)
        store.upsert_spot(updated)
    """

    @staticmethod
    def apply(spot: Spot, result: SpotResult, now: datetime) -> Spot:
        """Return the spot updated for ``result`` at time ``now``.

        Args:
            spot: Spot being practised
            result: Outcome of the run
            now: Time of the outcome

        Returns:
            New Spot instance; the input is not modified
        """
        now = as_utc(now)
        recent = (spot.recent_results + (result,))[-Config.RECENT_RESULTS_WINDOW:]
        success_count = spot.success_count + (1 if result.is_success else 0)
        failure_count = spot.failure_count + (0 if result.is_success else 1)

        if result == SpotResult.FAILED:
            ease = ResultProcessor._clamp_ease(spot.ease_factor - 0.2)
            repetitions = 0
            readiness = ReadinessLevel.LEARNING
            interval_days = 0
            next_due = now + timedelta(hours=Config.FAILED_RETRY_HOURS)

        elif result == SpotResult.STRUGGLED:
            ease = ResultProcessor._clamp_ease(spot.ease_factor - 0.15)
            repetitions = 0
            readiness = spot.readiness_level.regress()
            interval_days = 0
            next_due = now + timedelta(hours=Config.SHORT_INTERVAL_HOURS)

        elif result == SpotResult.GOOD:
            ease = spot.ease_factor
            repetitions = spot.repetitions + 1
            if spot.readiness_level == ReadinessLevel.NEW_SPOT:
                readiness = ReadinessLevel.LEARNING
            elif ResultProcessor.should_promote(recent):
                readiness = spot.readiness_level.advance()
            else:
                readiness = spot.readiness_level
            raw = ResultProcessor._sm2_interval(repetitions, spot.interval_days, ease)
            interval_days = ResultProcessor.clamp_to_band(raw, readiness)
            next_due = now + timedelta(days=interval_days)

        elif result == SpotResult.EXCELLENT:
            ease = ResultProcessor._clamp_ease(spot.ease_factor + 0.1)
            repetitions = spot.repetitions + 1
            readiness = spot.readiness_level.advance()
            raw = ResultProcessor._sm2_interval(repetitions, spot.interval_days, ease)
            raw = round(raw * Config.EXCELLENT_BONUS)
            interval_days = ResultProcessor.clamp_to_band(raw, readiness)
            next_due = now + timedelta(days=interval_days)

        else:
            raise ValueError(f"Unknown spot result: {result}")

        # next_due may never precede creation, even with a skewed clock
        next_due = max(next_due, as_utc(spot.created_at))

        if readiness != spot.readiness_level:
            logger.info(
                f"Spot {spot.id}: {spot.readiness_level.value} → {readiness.value} after {result.value}"
            )

        return replace(
            spot,
            readiness_level=readiness,
            practice_count=spot.practice_count + 1,
            success_count=success_count,
            failure_count=failure_count,
            ease_factor=round(ease, 2),
            interval_days=interval_days,
            repetitions=repetitions,
            next_due=next_due,
            updated_at=now,
            last_practiced=now,
            last_result=result,
            recent_results=recent,
        )

    @staticmethod
    def should_promote(recent) -> bool:
        """Whether recent outcomes justify advancing readiness on a "good" run."""
        if len(recent) < Config.PROMOTION_MIN_ATTEMPTS:
            return False
        successes = sum(1 for r in recent if r.is_success)
        return successes / len(recent) >= Config.PROMOTION_THRESHOLD

    @staticmethod
    def clamp_to_band(interval_days: int, readiness: ReadinessLevel) -> int:
        """Clamp an interval into the day range allowed for a readiness level."""
        low, high = Config.READINESS_INTERVAL_BANDS[readiness.value]
        return max(low, min(high, interval_days))

    @staticmethod
    def _sm2_interval(repetition: int, previous_interval: int, ease: float) -> int:
        if repetition <= 1:
            return 1
        if repetition == 2:
            return 6
        return int(round(previous_interval * ease))

    @staticmethod
    def _clamp_ease(ease: float) -> float:
        return max(Config.MIN_EASE_FACTOR, min(Config.MAX_EASE_FACTOR, ease))
