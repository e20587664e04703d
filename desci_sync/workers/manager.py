"""
Listener manager

Builds the configured listeners and runs each as an asyncio task next to
the API (or alone, from run_listener).

Modes:
- multiplexed (default): one listener over every configured contract,
  one checkpoint row named LISTENER_NAME
- per_contract: one listener per contract, checkpoint rows named
  LISTENER_NAME:ContractName
"""
import asyncio
import logging
from typing import Dict, List, Optional

from .listener_state import ListenerState
from .sync_worker import ChainSyncWorker
from ..config.settings import Settings
from ..services.chain_rpc import ChainRPCClient
from ..services.event_decoder import EventDecoder
from ..services.job_queue import JobQueue
from ..services.log_reader import EventLogReader
from ..services.retry import RetryPolicy

logger = logging.getLogger(__name__)


def retry_policy_from_settings(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
    )


class ListenerManager:

    def __init__(
        self,
        settings: Settings,
        store,
        rpc: ChainRPCClient,
        job_queue: Optional[JobQueue] = None,
        decoder: Optional[EventDecoder] = None,
    ):
        self.settings = settings
        self.store = store
        self.rpc = rpc
        self.job_queue = job_queue
        self.decoder = decoder or EventDecoder()
        self.workers: List[ChainSyncWorker] = self.build_workers()
        self._tasks: Dict[str, asyncio.Task] = {}

    def build_workers(self) -> List[ChainSyncWorker]:
        contracts = self.settings.contract_addresses
        if not contracts:
            logger.warning("⚠️  No contract addresses configured, no listeners will run")
            return []

        if self.settings.listener_mode == "per_contract":
            groups = {
                f"{self.settings.listener_name}:{contract}": {contract: address}
                for contract, address in contracts.items()
            }
        else:
            groups = {self.settings.listener_name: contracts}

        return [self._build_worker(name, group) for name, group in groups.items()]

    def _build_worker(self, name: str, contracts: Dict[str, str]) -> ChainSyncWorker:
        policy = retry_policy_from_settings(self.settings)
        reader = EventLogReader(
            self.rpc,
            list(contracts.values()),
            decoder=self.decoder,
            topics=self._topics_for(contracts),
            confirmations=self.settings.confirmations,
            batch_size=self.settings.batch_size,
            retry_policy=policy,
            name=name,
        )
        return ChainSyncWorker(
            name,
            reader,
            self.store,
            start_block=self.settings.start_block,
            poll_interval=self.settings.poll_interval_seconds,
            max_consecutive_failures=self.settings.max_consecutive_failures,
            backoff=policy,
            job_queue=self.job_queue,
        )

    def _topics_for(self, contracts: Dict[str, str]) -> Optional[List[List[str]]]:
        """topic0 filter for eth_getLogs when FILTER_KNOWN_TOPICS is on"""
        if not self.settings.filter_known_topics:
            return None
        topics = self.decoder.registry.topic_filter(contracts)
        # A contract without registered events would match nothing
        return topics if topics[0] else None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start_all(self):
        """Spawn one task per listener that is not already running"""
        for worker in self.workers:
            task = self._tasks.get(worker.name)
            if task is not None and not task.done():
                continue
            self._tasks[worker.name] = asyncio.create_task(worker.start(), name=f"listener:{worker.name}")
            logger.info(f"🚀 Listener {worker.name} started ({len(worker.reader.addresses)} contracts)")

    async def stop_all(self, timeout: Optional[float] = None):
        """Stop every listener and wait for in-flight batches to finish"""
        for worker in self.workers:
            worker.stop()
        tasks = [t for t in self._tasks.values() if not t.done()]
        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                logger.warning(f"{task.get_name()} did not stop in time, cancelling")
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        for name, task in self._tasks.items():
            if task.done() and not task.cancelled() and task.exception() is not None:
                logger.error(f"Listener {name} crashed: {task.exception()}")
        self._tasks.clear()

    async def wait(self):
        """Block until every listener task has exited"""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    # =========================================================================
    # STATUS
    # =========================================================================

    def statuses(self) -> List[dict]:
        return [w.status() for w in self.workers]

    @property
    def any_failed(self) -> bool:
        return any(w.state is ListenerState.FAILED for w in self.workers)

    @property
    def last_processed_block(self) -> Optional[int]:
        """Highest checkpoint any listener has confirmed in this process"""
        known = [w.tracker.last_known for w in self.workers if w.tracker.last_known is not None]
        return max(known) if known else None
