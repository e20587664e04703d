"""
Sync error taxonomy

Everything the listener and API raise on purpose derives from SyncError.
Content verification mismatches are not errors: they come back as a
VerificationResult with match=False.
"""
from typing import Optional


class SyncError(Exception):
    """Base class for chain sync errors"""


# =============================================================================
# Chain RPC
# =============================================================================

class RPCError(SyncError):
    """Permanent RPC failure (bad params, unknown method). Not retried."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class TransientRPCError(RPCError):
    """Timeouts, connection resets, 5xx/429, node-side hiccups. Retried."""


class RangeTooLarge(TransientRPCError):
    """Node refused an eth_getLogs range; caller should split it"""


# =============================================================================
# Decode / projection
# =============================================================================

class DecodeError(SyncError):
    """Malformed log payload. Logged and skipped."""


class ProjectionConflict(SyncError):
    """
    Natural key already projected from a different log.

    Benign when content matches (handled inside the projector as a no-op);
    raised only so callers can tell the two cases apart.
    """


class StateCorruption(ProjectionConflict):
    """Natural key collision with differing immutable content. Needs manual reconciliation."""


# =============================================================================
# Checkpoint / reads
# =============================================================================

class StaleCheckpoint(SyncError):
    """Commit attempted at or below the stored checkpoint"""

    def __init__(self, listener_name: str, current: int, attempted: int):
        super().__init__(
            f"Checkpoint for {listener_name} is at {current}; refusing commit of {attempted}"
        )
        self.listener_name = listener_name
        self.current = current
        self.attempted = attempted


class NotFound(SyncError):
    """Requested entity has not been projected"""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} {key} not found")
        self.kind = kind
        self.key = key


class InvalidTransition(SyncError):
    """Listener asked to move between states the state machine does not allow"""
