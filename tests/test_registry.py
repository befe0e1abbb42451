"""
Tests for SessionRegistry.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.dto import SessionMode, SpotResult
from core.errors import AlreadyActiveSessionError
from core.registry import SessionRegistry
from core.session import SessionState


@pytest.fixture
def registry(store, recorder):
    return SessionRegistry(store, recorder)


@pytest.fixture
def queue(store, make_spot):
    spots = [make_spot(), make_spot()]
    for spot in spots:
        store.upsert_spot(spot)
    return [s.id for s in spots]


class TestSessionRegistry:
    def test_machine_per_user(self, registry):
        assert registry.machine_for("alice") is registry.machine_for("alice")
        assert registry.machine_for("alice") is not registry.machine_for("bob")
        assert registry.machine_for("bob").user_id == "bob"

    def test_second_active_session_rejected(self, registry, queue):
        registry.start("alice", queue, SessionMode.SMART)
        with pytest.raises(AlreadyActiveSessionError):
            registry.start("alice", queue, SessionMode.WARMUP)

        # The first session is untouched
        assert registry.machine_for("alice").session.mode == SessionMode.SMART

    def test_rejected_while_paused(self, registry, queue):
        machine = registry.start("alice", queue, SessionMode.SMART)
        machine.pause()
        with pytest.raises(AlreadyActiveSessionError):
            registry.start("alice", queue, SessionMode.SMART)

    def test_users_are_independent(self, registry, queue):
        registry.start("alice", queue, SessionMode.SMART)
        registry.start("bob", queue, SessionMode.CRITICAL)
        assert sorted(registry.active_users()) == ["alice", "bob"]

    def test_active_session(self, registry, queue):
        assert registry.active_session("alice") is None
        machine = registry.start("alice", queue, SessionMode.SMART)
        assert registry.active_session("alice").id == machine.session.id

        machine.cancel_session()
        assert registry.active_session("alice") is None
        assert registry.active_users() == []

    def test_subscribers_see_every_user(self, registry, queue):
        events = []
        unsubscribe = registry.subscribe(lambda user_id, m: events.append((user_id, m.state)))

        alice = registry.start("alice", queue, SessionMode.SMART)
        registry.start("bob", queue, SessionMode.SMART)
        alice.complete_current_spot(SpotResult.GOOD)

        assert events == [
            ("alice", SessionState.RUNNING),
            ("bob", SessionState.RUNNING),
            ("alice", SessionState.RUNNING),
        ]

        unsubscribe()
        alice.pause()
        assert len(events) == 3
