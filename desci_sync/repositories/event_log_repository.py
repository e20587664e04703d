"""
Event Log Repository - ledger of every projected ChainEvent

Storage: PostgreSQL (event_logs table, unique on tx_hash + log_index)

record() is the idempotence gate: the projector only applies an event
when this insert actually wrote a row.
"""
import json
import logging
from typing import List, Union

import asyncpg

from ..models.domain import ChainEvent

logger = logging.getLogger(__name__)

Executor = Union[asyncpg.Pool, asyncpg.Connection]


class EventLogRepository:

    def __init__(self, db: Executor):
        self.db = db

    async def record(self, event: ChainEvent, listener_name: str) -> bool:
        """
        Remember an event.

        Returns:
            True on first sight, False if (tx_hash, log_index) is already recorded
        """
        inserted = await self.db.fetchval("""
            INSERT INTO event_logs (
                tx_hash, log_index, block_number, contract_address,
                event_name, payload_raw, listener_name
            )
            VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
            ON CONFLICT (tx_hash, log_index) DO NOTHING
            RETURNING tx_hash
        """,
            event.transaction_hash,
            event.log_index,
            event.block_number,
            event.contract_address,
            event.event_name,
            json.dumps(event.args, default=str),
            listener_name,
        )
        return inserted is not None

    async def exists(self, tx_hash: str, log_index: int) -> bool:
        return await self.db.fetchval("""
            SELECT EXISTS (
                SELECT 1 FROM event_logs WHERE tx_hash = $1 AND log_index = $2
            )
        """, tx_hash, log_index)

    async def list_range(self, from_block: int, to_block: int) -> List[dict]:
        """Recorded events in chain order, for reconciliation"""
        rows = await self.db.fetch("""
            SELECT tx_hash, log_index, block_number, contract_address, event_name, payload_raw
            FROM event_logs
            WHERE block_number BETWEEN $1 AND $2
            ORDER BY block_number, log_index
        """, from_block, to_block)
        return [dict(r) for r in rows]
