"""
ScoreRead Core - practice scheduling and session library.

Main components:
- SpotStore: Access to pieces and practice spots
- SchedulingEngine: Due-ness, urgency and session queues
- PracticeSessionMachine: Practice session state machine
- ResultProcessor: Schedule updates after each practice run
- SessionHistoryRecorder: Session history and statistics
- PracticeService: Facade used by the CLI
"""

from core.analytics import PieceAnalytics, PieceSummary
from core.errors import (
    AlreadyActiveSessionError,
    EmptyQueueError,
    InvalidStateTransitionError,
    ScoreReadError,
    SpotNotFoundError,
)
from core.history import SessionHistoryRecorder, SessionStats, calculate_streaks
from core.registry import SessionRegistry
from core.result_processor import ResultProcessor
from core.scheduling import SchedulingEngine
from core.service import PracticeService
from core.session import PracticeSessionMachine, SessionProgress, SessionState
from core.spot_store import SpotStore

__all__ = [
    "SpotStore",
    "SchedulingEngine",
    "PracticeSessionMachine",
    "SessionState",
    "SessionProgress",
    "SessionRegistry",
    "ResultProcessor",
    "SessionHistoryRecorder",
    "SessionStats",
    "calculate_streaks",
    "PieceAnalytics",
    "PieceSummary",
    "PracticeService",
    # Errors
    "ScoreReadError",
    "EmptyQueueError",
    "InvalidStateTransitionError",
    "AlreadyActiveSessionError",
    "SpotNotFoundError",
]
