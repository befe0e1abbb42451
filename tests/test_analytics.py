"""
Unit tests for PieceAnalytics.
"""

import os
import sys
from dataclasses import replace
from datetime import timedelta

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.analytics import PieceAnalytics
from core.dto import ReadinessLevel, SpotColor, SpotPriority


@pytest.fixture
def mixed_spots(make_spot, now):
    return [
        make_spot(title="red", priority=SpotPriority.HIGH),
        make_spot(title="yellow", next_due=now + timedelta(hours=12)),
        make_spot(title="green", readiness=ReadinessLevel.REVIEW, next_due=now + timedelta(days=2)),
        make_spot(title="blue", readiness=ReadinessLevel.MASTERED, next_due=now + timedelta(days=30)),
    ]


# ============================================================================
# Readiness and grouping
# ============================================================================


def test_spots_by_color(mixed_spots):
    grouped = PieceAnalytics.spots_by_color(mixed_spots)
    assert set(grouped) == set(SpotColor)
    assert [s.title for s in grouped[SpotColor.RED]] == ["red"]
    assert [s.title for s in grouped[SpotColor.BLUE]] == ["blue"]


def test_readiness_percentage(mixed_spots):
    assert PieceAnalytics.readiness_percentage(mixed_spots) == pytest.approx(50.0)
    assert PieceAnalytics.readiness_percentage([]) == 0.0


# ============================================================================
# Concert pressure and urgency
# ============================================================================


@pytest.mark.parametrize(
    "days,expected",
    [(3, 0.5), (7, 0.5), (10, 0.3), (20, 0.2), (45, 0.0), (-2, 0.0)],
)
def test_concert_pressure(piece, now, days, expected):
    piece = replace(piece, concert_date=now + timedelta(days=days, hours=1))
    assert PieceAnalytics.concert_pressure(piece, now) == expected


def test_no_concert_no_pressure(piece, now):
    assert PieceAnalytics.days_until_concert(piece, now) is None
    assert PieceAnalytics.concert_pressure(piece, now) == 0.0


def test_piece_urgency(piece, mixed_spots, now):
    piece = replace(piece, concert_date=now + timedelta(days=10, hours=1))
    # (1 red * 0.8 + 1 yellow * 0.5) / 4 + 1/4 overdue * 0.3 + 0.3 pressure
    assert PieceAnalytics.piece_urgency(piece, mixed_spots, now) == pytest.approx(0.7)
    assert PieceAnalytics.piece_urgency(piece, [], now) == 0.0


def test_spots_due_today(mixed_spots, now):
    due = PieceAnalytics.spots_due_today(mixed_spots, now)
    assert [s.title for s in due] == ["red", "yellow"]


# ============================================================================
# Summaries
# ============================================================================


def test_summarize(piece, mixed_spots, now):
    piece = replace(piece, concert_date=now + timedelta(days=10, hours=1))
    summary = PieceAnalytics.summarize(piece, mixed_spots, now)

    assert summary.total_spots == 4
    assert summary.due_spots == 1
    assert summary.readiness_percentage == pytest.approx(50.0)
    assert summary.days_until_concert == 10
    assert summary.spots_by_color == {"red": 1, "yellow": 1, "green": 1, "blue": 1}


def test_rank_pieces(piece, mixed_spots, make_spot, now):
    urgent = replace(piece, spots=tuple(mixed_spots))
    calm = replace(
        piece,
        id="piece-2",
        title="Nocturne",
        spots=(make_spot(piece_id="piece-2", readiness=ReadinessLevel.MASTERED, next_due=now + timedelta(days=20)),),
    )

    ranked = PieceAnalytics.rank_pieces([calm, urgent], now)
    assert [s.piece_id for s in ranked] == ["piece-1", "piece-2"]
