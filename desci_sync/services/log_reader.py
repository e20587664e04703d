"""
Event Log Reader

Turns a checkpoint into ordered batches of ChainEvent:

    head = eth_blockNumber
    safe = head - confirmations          # reorg guard
    [from, min(from + batch_size - 1, safe)] → eth_getLogs → decode → sort

Blocks above the safe head are left for a later poll. A batch either
covers its whole contiguous range or the fetch fails; callers never see
a partial range. eth_getLogs ranges the node rejects as too wide are
split in half until they fit.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence

from .chain_rpc import ChainRPCClient
from .errors import DecodeError, RPCError, RangeTooLarge
from .event_decoder import EventDecoder
from .retry import RetryPolicy, RetryResult
from ..models.domain import ChainEvent

logger = logging.getLogger(__name__)


@dataclass
class EventBatch:
    """Decoded events for an inclusive, contiguous block range"""
    from_block: int
    to_block: int
    events: List[ChainEvent] = field(default_factory=list)
    skipped: int = 0  # malformed logs dropped by the decoder

    def __len__(self) -> int:
        return len(self.events)


class EventLogReader:
    """
    Reads confirmed contract logs for a set of addresses.

    Args:
        rpc: Chain JSON-RPC client
        addresses: Watched contract addresses
        decoder: Event decoder (defaults to the platform registry)
        confirmations: Depth below head treated as final
        batch_size: Max blocks per eth_getLogs call
        retry_policy: Backoff for transient RPC failures
        topics: Optional eth_getLogs topic filter
        name: Label for log lines
    """

    def __init__(
        self,
        rpc: ChainRPCClient,
        addresses: Sequence[str],
        decoder: Optional[EventDecoder] = None,
        confirmations: int = 2,
        batch_size: int = 500,
        retry_policy: Optional[RetryPolicy] = None,
        topics: Optional[Sequence] = None,
        name: str = "reader",
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if confirmations < 0:
            raise ValueError("confirmations must be >= 0")

        self.rpc = rpc
        self.addresses = list(addresses)
        self.decoder = decoder or EventDecoder()
        self.confirmations = confirmations
        self.batch_size = batch_size
        self.retry_policy = retry_policy or RetryPolicy()
        self.topics = list(topics) if topics else None
        self.name = name

    # =========================================================================
    # HEAD
    # =========================================================================

    async def safe_head(self) -> int:
        """Highest block with enough confirmations (negative while the chain is shorter)"""
        head = await self.rpc.block_number()
        return head - self.confirmations

    # =========================================================================
    # FETCH
    # =========================================================================

    async def fetch_range(self, from_block: int, to_block: int) -> EventBatch:
        """
        Fetch and decode every watched log in [from_block, to_block].

        Raises:
            TransientRPCError / RPCError: nothing from the range is returned
        """
        if from_block > to_block:
            raise ValueError(f"empty range {from_block}-{to_block}")

        raw_logs = await self._get_logs_split(from_block, to_block)

        events: List[ChainEvent] = []
        skipped = 0
        for raw in raw_logs:
            if raw.get('removed'):
                continue
            try:
                event = self.decoder.decode_log(raw)
            except DecodeError as e:
                skipped += 1
                logger.warning(f"[{self.name}] Skipping malformed log: {e}")
                continue
            if not from_block <= event.block_number <= to_block:
                logger.warning(
                    f"[{self.name}] Node returned {event} outside {from_block}-{to_block}; ignoring"
                )
                continue
            events.append(event)

        events.sort(key=lambda e: e.sort_key)
        events = await self._attach_timestamps(events)

        return EventBatch(from_block=from_block, to_block=to_block, events=events, skipped=skipped)

    async def _get_logs_split(self, from_block: int, to_block: int) -> List[dict]:
        try:
            return await self.rpc.get_logs(from_block, to_block, self.addresses, self.topics)
        except RangeTooLarge:
            if from_block == to_block:
                raise RPCError(f"eth_getLogs rejects single block {from_block}")
            mid = (from_block + to_block) // 2
            logger.warning(
                f"[{self.name}] eth_getLogs range {from_block}-{to_block} too large, splitting at {mid}"
            )
            left = await self._get_logs_split(from_block, mid)
            right = await self._get_logs_split(mid + 1, to_block)
            return left + right

    async def _attach_timestamps(self, events: List[ChainEvent]) -> List[ChainEvent]:
        timestamps: Dict[int, datetime] = {}
        for block in sorted({e.block_number for e in events}):
            timestamps[block] = await self.rpc.get_block_timestamp(block)
        return [replace(e, block_timestamp=timestamps[e.block_number]) for e in events]

    # =========================================================================
    # BATCHES
    # =========================================================================

    def plan_range(self, from_block: int, safe_head: int) -> Optional[tuple]:
        """Next inclusive range to fetch, or None when caught up"""
        if from_block > safe_head:
            return None
        return (from_block, min(from_block + self.batch_size - 1, safe_head))

    async def next_batch(self, from_block: int) -> RetryResult[Optional[EventBatch]]:
        """
        One poll step under the retry policy.

        Returns:
            ok + EventBatch when a confirmed range was read,
            ok + None when from_block is above the safe head,
            not ok + error once the retry budget is spent
        """
        head_result = await self.retry_policy.run(self.safe_head, description=f"[{self.name}] eth_blockNumber")
        if not head_result.ok:
            return RetryResult(ok=False, error=head_result.error, attempts=head_result.attempts)

        planned = self.plan_range(from_block, head_result.value)
        if planned is None:
            return RetryResult(ok=True, value=None, attempts=head_result.attempts)

        start, end = planned
        return await self.retry_policy.run(
            lambda: self.fetch_range(start, end),
            description=f"[{self.name}] fetch {start}-{end}",
        )

    async def iter_batches(self, from_block: int) -> AsyncIterator[EventBatch]:
        """
        Lazily yield consecutive batches from from_block up to the safe head.

        Finite per call; restart with checkpoint + 1 to resume.

        Raises:
            The final RPC error if a step exhausts its retries
        """
        current = from_block
        while True:
            batch = (await self.next_batch(current)).unwrap()
            if batch is None:
                return
            yield batch
            current = batch.to_block + 1
