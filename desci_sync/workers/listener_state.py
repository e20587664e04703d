"""
Listener lifecycle state machine

    STOPPED → STARTING → RUNNING ⇄ BACKOFF
    STARTING | RUNNING | BACKOFF → STOPPING → STOPPED
    STARTING | RUNNING | BACKOFF → FAILED

FAILED is terminal until an operator resets the listener (FAILED → STOPPED).
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from ..services.errors import InvalidTransition

logger = logging.getLogger(__name__)


class ListenerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    BACKOFF = "backoff"
    STOPPING = "stopping"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Dict[ListenerState, FrozenSet[ListenerState]] = {
    ListenerState.STOPPED: frozenset({ListenerState.STARTING}),
    ListenerState.STARTING: frozenset({ListenerState.RUNNING, ListenerState.STOPPING, ListenerState.FAILED}),
    ListenerState.RUNNING: frozenset({ListenerState.BACKOFF, ListenerState.STOPPING, ListenerState.FAILED}),
    ListenerState.BACKOFF: frozenset({ListenerState.RUNNING, ListenerState.STOPPING, ListenerState.FAILED}),
    ListenerState.STOPPING: frozenset({ListenerState.STOPPED}),
    ListenerState.FAILED: frozenset({ListenerState.STOPPED}),
}


class ListenerStateMachine:

    def __init__(self, name: str, state: ListenerState = ListenerState.STOPPED):
        self.name = name
        self.state = state
        self.changed_at = datetime.now(timezone.utc)
        self.history: List[Tuple[ListenerState, ListenerState]] = []

    def can_transition(self, target: ListenerState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: ListenerState, reason: Optional[str] = None) -> None:
        """
        Raises:
            InvalidTransition: target not reachable from the current state
        """
        if not self.can_transition(target):
            raise InvalidTransition(
                f"[{self.name}] cannot go from {self.state.value} to {target.value}"
            )
        previous = self.state
        self.state = target
        self.changed_at = datetime.now(timezone.utc)
        self.history.append((previous, target))

        message = f"[{self.name}] {previous.value} → {target.value}"
        if reason:
            message += f" ({reason})"
        if target is ListenerState.FAILED:
            logger.error(message)
        else:
            logger.info(message)

    @property
    def is_active(self) -> bool:
        return self.state in (ListenerState.STARTING, ListenerState.RUNNING, ListenerState.BACKOFF)
