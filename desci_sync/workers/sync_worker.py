"""
Chain sync worker

Long-lived loop that drives one listener:

    checkpoint + 1 → reader.next_batch → BEGIN
        lock checkpoint row
        project events in (block, log) order
        advance checkpoint to batch.to_block
    COMMIT → notify → next batch (or wait poll_interval when caught up)

A failed cycle rolls back the whole batch, moves the listener to BACKOFF
and is retried after an exponential delay. Once consecutive failures
exceed the budget, or on StateCorruption, the listener goes to FAILED
and stops; the API keeps serving and reports degraded health.
"""
import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Optional

from redis.exceptions import RedisError

from .listener_state import ListenerState, ListenerStateMachine
from ..services.checkpoint import CheckpointTracker
from ..services.errors import StaleCheckpoint, StateCorruption
from ..services.job_queue import JobQueue
from ..services.log_reader import EventBatch, EventLogReader
from ..services.projector import EventProjector, ProjectionStats
from ..services.retry import RetryPolicy

logger = logging.getLogger(__name__)


class ChainSyncWorker:
    """
    One listener: a reader, a projector and a checkpoint row.

    Args:
        name: Listener name (checkpoint key, log tag)
        reader: EventLogReader for this listener's contracts
        store: PostgresStore
        start_block: First block to read when no checkpoint exists
        poll_interval: Seconds to wait once caught up with the safe head
        max_consecutive_failures: Failed cycles tolerated before FAILED
        backoff: Delay schedule between failed cycles
        job_queue: Optional batch notification queue
    """

    def __init__(
        self,
        name: str,
        reader: EventLogReader,
        store,
        projector: Optional[EventProjector] = None,
        tracker: Optional[CheckpointTracker] = None,
        start_block: int = 0,
        poll_interval: float = 5.0,
        max_consecutive_failures: int = 10,
        backoff: Optional[RetryPolicy] = None,
        job_queue: Optional[JobQueue] = None,
    ):
        self.name = name
        self.reader = reader
        self.store = store
        self.projector = projector or EventProjector(reader.decoder, listener_name=name)
        self.tracker = tracker or CheckpointTracker(store, name)
        self.start_block = start_block
        self.poll_interval = poll_interval
        self.max_consecutive_failures = max_consecutive_failures
        self.backoff = backoff or reader.retry_policy
        self.job_queue = job_queue

        self.machine = ListenerStateMachine(name)
        self.running = False
        self.next_block: Optional[int] = None

        # Counters
        self.batches_processed = 0
        self.events_projected = 0
        self.cycles_failed = 0
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None
        self.last_batch_at: Optional[datetime] = None

        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> ListenerState:
        return self.machine.state

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self, install_signal_handlers: bool = False):
        """
        Run the listener until stop() or FAILED.

        Returns after the final state transition.
        """
        if install_signal_handlers:
            self._setup_signal_handlers()

        self._stop_event.clear()
        self.running = True
        self.machine.transition(ListenerState.STARTING)

        if not await self._startup():
            return

        self.machine.transition(ListenerState.RUNNING, f"from block {self.next_block}")

        while self.running:
            try:
                batch = await self.run_cycle()
            except StateCorruption as e:
                self._fail(f"state corruption: {e}")
                return
            except asyncio.CancelledError:
                logger.info(f"[{self.name}] Received cancellation signal")
                self.running = False
                break
            except Exception as e:
                if not await self._on_cycle_failure(e):
                    return
                continue

            if self.state is ListenerState.BACKOFF:
                self.machine.transition(ListenerState.RUNNING, "recovered")
            self.consecutive_failures = 0

            if batch is None:
                await self._wait(self.poll_interval)

        self._finish()

    def stop(self):
        """
        Ask the loop to exit after the in-flight batch.

        Interrupts the wait between polls; no-op once stopped or failed.
        """
        if not self.running:
            return
        logger.info(f"[{self.name}] Stop requested")
        self.running = False
        self._stop_event.set()

    def reset(self):
        """Operator restart of a FAILED listener"""
        self.machine.transition(ListenerState.STOPPED, "reset")
        self.consecutive_failures = 0
        self.next_block = None

    def _setup_signal_handlers(self):
        """Setup graceful shutdown on SIGTERM/SIGINT"""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.stop)

    async def _startup(self) -> bool:
        """Resolve the resume block; retries under the failure budget"""
        while self.running:
            try:
                self.next_block = await self.tracker.resume_block(self.start_block)
                return True
            except Exception as e:
                self.consecutive_failures += 1
                self.cycles_failed += 1
                self.last_error = str(e)
                if self.consecutive_failures > self.max_consecutive_failures:
                    self._fail(f"startup: {e}")
                    return False
                delay = self.backoff.delay_for(self.consecutive_failures)
                logger.warning(f"[{self.name}] Startup failed ({e}), retrying in {delay:.1f}s")
                await self._wait(delay)

        self.machine.transition(ListenerState.STOPPING, "stopped during startup")
        self.machine.transition(ListenerState.STOPPED)
        return False

    def _finish(self):
        if self.state in (ListenerState.RUNNING, ListenerState.BACKOFF):
            self.machine.transition(ListenerState.STOPPING)
        if self.state is ListenerState.STOPPING:
            self.machine.transition(ListenerState.STOPPED)
        logger.info(
            f"[{self.name}] Shutting down. "
            f"Batches: {self.batches_processed}, Events: {self.events_projected}, "
            f"Failed cycles: {self.cycles_failed}"
        )

    def _fail(self, reason: str):
        self.running = False
        self.last_error = reason
        self.machine.transition(ListenerState.FAILED, reason)

    async def _wait(self, seconds: float):
        """Sleep that stop() can interrupt"""
        if seconds <= 0 or self._stop_event.is_set():
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _on_cycle_failure(self, error: Exception) -> bool:
        """Record a failed cycle. Returns False once the listener is FAILED."""
        self.consecutive_failures += 1
        self.cycles_failed += 1
        self.last_error = str(error)
        # Re-read the checkpoint next cycle; the failed batch was rolled back
        self.next_block = None

        if self.consecutive_failures > self.max_consecutive_failures:
            self._fail(f"{self.consecutive_failures} consecutive failed cycles, last: {error}")
            return False

        if self.state is ListenerState.RUNNING:
            self.machine.transition(ListenerState.BACKOFF, str(error))

        delay = self.backoff.delay_for(self.consecutive_failures)
        logger.warning(
            f"[{self.name}] ⚠️  Cycle failed ({self.consecutive_failures}/"
            f"{self.max_consecutive_failures}): {error}; next attempt in {delay:.1f}s",
            exc_info=not isinstance(error, StaleCheckpoint),
        )
        await self._wait(delay)
        return True

    # =========================================================================
    # CYCLE
    # =========================================================================

    async def run_cycle(self) -> Optional[EventBatch]:
        """
        Fetch, project and checkpoint one batch.

        Returns:
            The committed batch, or None when already at the safe head

        Raises:
            The RPC error once the reader's retries are exhausted, any
            store error (batch rolled back), StateCorruption
        """
        async with self._lock:
            if self.next_block is None:
                self.next_block = await self.tracker.resume_block(self.start_block)

            result = await self.reader.next_batch(self.next_block)
            batch = result.unwrap()
            if batch is None:
                return None

            stats = await self._apply(batch)

            self.tracker.remember(batch.to_block)
            self.next_block = batch.to_block + 1
            self.batches_processed += 1
            self.events_projected += stats.applied
            self.last_batch_at = datetime.now(timezone.utc)

            logger.info(
                f"[{self.name}] ✅ Blocks {batch.from_block}-{batch.to_block}: "
                f"{len(batch)} events ({stats.summary() or 'none'})"
            )

        await self._notify(batch, stats)
        return batch

    async def _apply(self, batch: EventBatch) -> ProjectionStats:
        """Project batch and advance the checkpoint in one transaction"""
        async with self.store.transaction() as session:
            current = await self.tracker.lock(session)
            if batch.from_block <= current:
                raise StaleCheckpoint(self.name, current, batch.to_block)

            stats = await self.projector.project_batch(session, batch.events)
            await self.tracker.commit(batch.to_block, session=session)
        return stats

    async def _notify(self, batch: EventBatch, stats: ProjectionStats):
        if self.job_queue is None:
            return
        try:
            await self.job_queue.publish_batch(
                self.name,
                batch.from_block,
                batch.to_block,
                events=len(batch),
                applied=stats.applied,
            )
        except (RedisError, OSError) as e:
            # Batch is already committed; a lost notification is not a failed cycle
            logger.warning(f"[{self.name}] Batch notification failed: {e}")

    # =========================================================================
    # STATUS
    # =========================================================================

    def status(self) -> dict:
        return {
            'name': self.name,
            'state': self.state.value,
            'last_processed_block': self.tracker.last_known,
            'next_block': self.next_block,
            'batches_processed': self.batches_processed,
            'events_projected': self.events_projected,
            'consecutive_failures': self.consecutive_failures,
            'last_error': self.last_error,
            'last_batch_at': self.last_batch_at.isoformat() if self.last_batch_at else None,
        }
