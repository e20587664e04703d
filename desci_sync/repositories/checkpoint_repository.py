"""
Checkpoint Repository - PostgreSQL storage for listener progress

Storage: PostgreSQL (sync_checkpoints table, one row per listener)
"""
import logging
from typing import List, Optional, Union

import asyncpg

from ..models.domain import SyncCheckpoint

logger = logging.getLogger(__name__)

Executor = Union[asyncpg.Pool, asyncpg.Connection]


class CheckpointRepository:

    def __init__(self, db: Executor):
        self.db = db

    async def get(self, listener_name: str) -> Optional[SyncCheckpoint]:
        row = await self.db.fetchrow("""
            SELECT listener_name, last_processed_block, updated_at
            FROM sync_checkpoints
            WHERE listener_name = $1
        """, listener_name)
        return SyncCheckpoint(**dict(row)) if row else None

    async def list_all(self) -> List[SyncCheckpoint]:
        rows = await self.db.fetch("""
            SELECT listener_name, last_processed_block, updated_at
            FROM sync_checkpoints
            ORDER BY listener_name
        """)
        return [SyncCheckpoint(**dict(r)) for r in rows]

    async def lock(self, listener_name: str) -> SyncCheckpoint:
        """
        Row-lock the listener's checkpoint for the rest of the transaction.

        Creates the row at 0 on first use. Must run inside a transaction;
        a second writer for the same listener blocks here until the first
        batch commits or rolls back.
        """
        await self.db.execute("""
            INSERT INTO sync_checkpoints (listener_name, last_processed_block)
            VALUES ($1, 0)
            ON CONFLICT (listener_name) DO NOTHING
        """, listener_name)

        row = await self.db.fetchrow("""
            SELECT listener_name, last_processed_block, updated_at
            FROM sync_checkpoints
            WHERE listener_name = $1
            FOR UPDATE
        """, listener_name)
        return SyncCheckpoint(**dict(row))

    async def advance(self, listener_name: str, block_number: int) -> bool:
        """
        Move the checkpoint forward.

        Returns:
            False if the stored value is already >= block_number
        """
        result = await self.db.execute("""
            UPDATE sync_checkpoints
            SET last_processed_block = $2,
                updated_at = NOW()
            WHERE listener_name = $1
              AND last_processed_block < $2
        """, listener_name, block_number)
        return int(result.split()[-1]) > 0
