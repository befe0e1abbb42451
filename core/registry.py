"""
Session registry - one practice session machine per user.

The registry is created once by the application and handed to whatever
needs session access. It enforces the single-active-session rule and relays
every machine transition to its own subscribers, so UI code can observe
sessions without reaching into module-level state.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from core.dto import PracticeSession, SessionMode
from core.errors import AlreadyActiveSessionError
from core.history import SessionHistoryRecorder
from core.session import PracticeSessionMachine
from core.spot_store import SpotStore

logger = logging.getLogger(__name__)

RegistryListener = Callable[[str, PracticeSessionMachine], None]


class SessionRegistry:
    """Owns the session machine of every user.

    Usage:
        registry = SessionRegistry(store, recorder)
        unsubscribe = registry.subscribe(lambda user_id, machine: redraw(machine))
        machine = registry.start("alice", queue, SessionMode.SMART)
    """

    def __init__(self, store: SpotStore, recorder: SessionHistoryRecorder):
        self.store = store
        self.recorder = recorder
        self._machines: Dict[str, PracticeSessionMachine] = {}
        self._listeners: List[RegistryListener] = []

    def machine_for(self, user_id: str) -> PracticeSessionMachine:
        """Get (or lazily create) the machine of a user."""
        machine = self._machines.get(user_id)
        if machine is None:
            machine = PracticeSessionMachine(self.store, self.recorder, user_id=user_id)
            machine.subscribe(lambda m, uid=user_id: self._relay(uid, m))
            self._machines[user_id] = machine
        return machine

    def start(
        self,
        user_id: str,
        queue: Sequence[str],
        mode: SessionMode,
        **kwargs,
    ) -> PracticeSessionMachine:
        """Start a session for a user.

        Keyword arguments are passed to PracticeSessionMachine.start().

        Raises:
            AlreadyActiveSessionError: If the user's session is running or paused
        """
        machine = self.machine_for(user_id)
        if machine.is_active:
            logger.warning(f"User {user_id} already has active session {machine.session.id}")
            raise AlreadyActiveSessionError(machine.session.id)
        machine.start(queue, mode, **kwargs)
        return machine

    def active_session(self, user_id: str) -> Optional[PracticeSession]:
        """The user's running or paused session, if any."""
        machine = self._machines.get(user_id)
        if machine is None or not machine.is_active:
            return None
        return machine.session

    def active_users(self) -> List[str]:
        return [uid for uid, machine in self._machines.items() if machine.is_active]

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        """Register a listener for transitions of any user's session.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _relay(self, user_id: str, machine: PracticeSessionMachine):
        for listener in list(self._listeners):
            listener(user_id, machine)
