"""
Checkpoint Tracker

Durable per-listener progress marker. The checkpoint only moves forward
and is written in the same transaction as the batch it covers, so after
a crash the store and the checkpoint agree.
"""
import logging
from typing import Optional

from .errors import StaleCheckpoint

logger = logging.getLogger(__name__)


class CheckpointTracker:
    """
    Args:
        store: PostgresStore (or anything with .checkpoints and .transaction())
        listener_name: Checkpoint row key
    """

    def __init__(self, store, listener_name: str):
        self.store = store
        self.listener_name = listener_name
        self.last_known: Optional[int] = None  # cached for health reporting

    async def get(self) -> int:
        """Last durably committed block (0 if the listener never committed)"""
        checkpoint = await self.store.checkpoints.get(self.listener_name)
        block = checkpoint.last_processed_block if checkpoint else 0
        self.last_known = block
        return block

    async def resume_block(self, start_block: int = 0) -> int:
        """
        First block the listener should read: checkpoint + 1, or start_block
        on first run. Block 0 counts as processed (genesis carries no logs).
        """
        checkpoint = await self.store.checkpoints.get(self.listener_name)
        if checkpoint is None:
            self.last_known = None
            return max(start_block, 1)
        self.last_known = checkpoint.last_processed_block
        return checkpoint.last_processed_block + 1

    async def lock(self, session) -> int:
        """Row-lock the checkpoint inside session's transaction and return its value"""
        checkpoint = await session.checkpoints.lock(self.listener_name)
        return checkpoint.last_processed_block

    async def commit(self, block_number: int, session=None) -> None:
        """
        Advance the checkpoint to block_number.

        With a session, the write joins the caller's transaction and the
        caller confirms it via remember() after commit. Without one, a
        short transaction of its own is used.

        Raises:
            StaleCheckpoint: block_number <= stored checkpoint
        """
        if session is not None:
            await self._advance(session, block_number)
            return

        async with self.store.transaction() as own_session:
            await self._advance(own_session, block_number)
        self.remember(block_number)

    def remember(self, block_number: int) -> None:
        self.last_known = block_number

    async def _advance(self, session, block_number: int) -> None:
        current = await self.lock(session)
        if block_number <= current:
            raise StaleCheckpoint(self.listener_name, current, block_number)
        await session.checkpoints.advance(self.listener_name, block_number)
        logger.debug(f"[{self.listener_name}] Checkpoint {current} → {block_number}")
