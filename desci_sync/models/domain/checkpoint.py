"""
Sync checkpoint and verification result models
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class SyncCheckpoint:
    """
    Last block whose events are fully and durably projected.

    One row per listener (sync_checkpoints table). Written in the same
    transaction as the batch it covers.
    """
    listener_name: str
    last_processed_block: int = 0
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a content check. Never persisted."""
    token_id: str
    requested_hash: str  # hash recorded on chain at mint time
    computed_hash: str   # hash of the supplied content

    @property
    def match(self) -> bool:
        return self.requested_hash == self.computed_hash
