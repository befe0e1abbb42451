"""
Shared fixtures for scoreread-core tests.
"""

import os
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.dto import Piece, ReadinessLevel, Spot, SpotPriority
from core.history import SessionHistoryRecorder
from core.session import PracticeSessionMachine
from core.spot_store import SpotStore
from storage.database import Database
from storage.memory import InMemoryRepository

NOW = datetime(2025, 3, 10, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_spot():
    """Factory for spots created a week before NOW, due now unless overridden."""
    counter = {"n": 0}

    def _make(
        title=None,
        priority=SpotPriority.MEDIUM,
        readiness=ReadinessLevel.LEARNING,
        piece_id="piece-1",
        created_at=NOW - timedelta(days=7),
        **overrides,
    ):
        counter["n"] += 1
        spot = Spot.create(
            piece_id,
            title or f"Spot {counter['n']}",
            priority=priority,
            now=created_at,
        )
        spot = replace(spot, id=f"spot-{counter['n']:03d}", readiness_level=readiness)
        return replace(spot, **overrides) if overrides else spot

    return _make


@pytest.fixture
def piece():
    return replace(
        Piece.create("Ballade No. 1", "Chopin", difficulty=5, now=NOW - timedelta(days=30)),
        id="piece-1",
    )


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def store(repository):
    return SpotStore(repository)


@pytest.fixture
def recorder(repository):
    return SessionHistoryRecorder(repository)


@pytest.fixture
def machine(store, recorder):
    return PracticeSessionMachine(store, recorder, user_id="alice")


@pytest.fixture
def database(tmp_path):
    db = Database(tmp_path / "scoreread.db")
    db.initialize()
    yield db
    db.close()
