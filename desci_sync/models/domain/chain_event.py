"""
ChainEvent domain model - a decoded contract log
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ChainEvent:
    """
    One contract log, decoded against the event ABI registry.

    Immutable once observed. Identified by (transaction_hash, log_index);
    ordered by (block_number, log_index).
    """
    contract_address: str
    event_name: str
    block_number: int
    transaction_hash: str
    log_index: int
    args: Dict[str, Any] = field(default_factory=dict)

    # Filled from eth_getBlockByNumber when the reader resolves it
    block_timestamp: Optional[datetime] = None

    @property
    def event_id(self) -> Tuple[str, int]:
        return (self.transaction_hash, self.log_index)

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)

    def __str__(self) -> str:
        return (
            f"{self.event_name}@{self.block_number}"
            f"[{self.transaction_hash[:10]}:{self.log_index}]"
        )
