"""
Listener workers - long-lived chain sync loops
"""
from .listener_state import ListenerState, ListenerStateMachine, ALLOWED_TRANSITIONS
from .sync_worker import ChainSyncWorker
from .manager import ListenerManager, retry_policy_from_settings

__all__ = [
    'ListenerState',
    'ListenerStateMachine',
    'ALLOWED_TRANSITIONS',
    'ChainSyncWorker',
    'ListenerManager',
    'retry_policy_from_settings',
]
