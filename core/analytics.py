"""
Piece analytics for ScoreRead.
Readiness, urgency and due-today summaries over the spots of a piece.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from core.dto import Piece, Spot, SpotColor, as_utc
from core.scheduling import SchedulingEngine


@dataclass
class PieceSummary:
    """Practice summary of one piece."""

    piece_id: str
    title: str
    total_spots: int
    due_spots: int
    readiness_percentage: float  # 0-100
    urgency: float
    spots_by_color: Dict[str, int]
    days_until_concert: Optional[int] = None


class PieceAnalytics:
    """Analytics over pieces and their spots (no store access)."""

    # Colours that count as "ready" for the readiness percentage
    READY_COLORS = (SpotColor.GREEN, SpotColor.BLUE)

    @staticmethod
    def spots_by_color(spots: Iterable[Spot]) -> Dict[SpotColor, List[Spot]]:
        grouped: Dict[SpotColor, List[Spot]] = {color: [] for color in SpotColor}
        for spot in spots:
            grouped[spot.color].append(spot)
        return grouped

    @staticmethod
    def readiness_percentage(spots: List[Spot]) -> float:
        """Share of spots in maintenance or solved state (0-100).

        A piece without spots is reported as 0% ready, not 100%.
        """
        if not spots:
            return 0.0
        ready = sum(1 for s in spots if s.color in PieceAnalytics.READY_COLORS)
        return ready / len(spots) * 100

    @staticmethod
    def days_until_concert(piece: Piece, now: datetime) -> Optional[int]:
        if piece.concert_date is None:
            return None
        return (as_utc(piece.concert_date) - as_utc(now)).days

    @staticmethod
    def concert_pressure(piece: Piece, now: datetime) -> float:
        """Extra urgency as a concert approaches (0 when none or already past)."""
        days = PieceAnalytics.days_until_concert(piece, now)
        if days is None or days < 0:
            return 0.0
        if days <= 7:
            return 0.5
        if days <= 14:
            return 0.3
        if days <= 30:
            return 0.2
        return 0.0

    @staticmethod
    def piece_urgency(piece: Piece, spots: List[Spot], now: datetime) -> float:
        """Piece-level urgency used to rank pieces for smart practice.

        Formula:
            (red * 0.8 + yellow * 0.5) / total
            + overdue_share * 0.3
            + concert_pressure
        """
        if not spots:
            return 0.0
        grouped = PieceAnalytics.spots_by_color(spots)
        total = len(spots)
        color_score = (len(grouped[SpotColor.RED]) * 0.8 + len(grouped[SpotColor.YELLOW]) * 0.5) / total
        overdue = sum(1 for s in spots if as_utc(s.next_due) < as_utc(now))
        return color_score + (overdue / total) * 0.3 + PieceAnalytics.concert_pressure(piece, now)

    @staticmethod
    def spots_due_today(spots: Iterable[Spot], now: datetime) -> List[Spot]:
        """Active spots falling due within the next 24 hours, most urgent first."""
        horizon = as_utc(now) + timedelta(days=1)
        due = [s for s in spots if s.is_active and as_utc(s.next_due) < horizon]
        return SchedulingEngine.order_by_urgency(due, now)

    @staticmethod
    def summarize(piece: Piece, spots: List[Spot], now: datetime) -> PieceSummary:
        grouped = PieceAnalytics.spots_by_color(spots)
        return PieceSummary(
            piece_id=piece.id,
            title=piece.title,
            total_spots=len(spots),
            due_spots=sum(1 for s in spots if s.is_active and SchedulingEngine.is_due(s, now)),
            readiness_percentage=PieceAnalytics.readiness_percentage(spots),
            urgency=PieceAnalytics.piece_urgency(piece, spots, now),
            spots_by_color={color.value: len(items) for color, items in grouped.items()},
            days_until_concert=PieceAnalytics.days_until_concert(piece, now),
        )

    @staticmethod
    def rank_pieces(pieces: Iterable[Piece], now: datetime) -> List[PieceSummary]:
        """Summaries of all pieces, most urgent first (title breaks ties)."""
        summaries = [PieceAnalytics.summarize(p, list(p.spots), now) for p in pieces]
        return sorted(summaries, key=lambda s: (-s.urgency, s.title))
