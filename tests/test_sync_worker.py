"""
Tests for the chain sync worker: batch cycles, crash recovery, backoff,
failure budget and shutdown.
"""
import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from desci_sync.services.checkpoint import CheckpointTracker
from desci_sync.services.errors import StaleCheckpoint, TransientRPCError
from desci_sync.services.retry import RetryPolicy
from desci_sync.workers.listener_state import ListenerState
from desci_sync.workers.sync_worker import ChainSyncWorker

from .fakes import wait_until

S = ListenerState


class RecordingQueue:
    """Stands in for JobQueue.publish_batch"""

    def __init__(self, error=None):
        self.published = []
        self.error = error

    async def publish_batch(self, listener_name, from_block, to_block, events=0, applied=0):
        if self.error is not None:
            raise self.error
        self.published.append((listener_name, from_block, to_block, events, applied))


@pytest.fixture
def make_worker(reader, store):
    def factory(**kwargs):
        kwargs.setdefault('poll_interval', 30.0)
        kwargs.setdefault('max_consecutive_failures', 3)
        kwargs.setdefault('backoff', RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0))
        return ChainSyncWorker("test", reader, store, **kwargs)
    return factory


async def run_until_done(worker, timeout=3.0):
    await asyncio.wait_for(worker.start(), timeout=timeout)


class TestRunCycle:

    @pytest.mark.asyncio
    async def test_projects_batch_and_advances_checkpoint(self, make_worker, chain, store, logs):
        chain.head = 52
        chain.add(logs.research_minted(1, block=10), logs.research_minted(2, block=20))
        worker = make_worker()

        batch = await worker.run_cycle()

        assert (batch.from_block, batch.to_block) == (1, 50)
        assert store.checkpoint("test") == 50
        assert set(store.tables.research) == {"1", "2"}
        assert worker.next_block == 51
        assert worker.tracker.last_known == 50
        assert worker.events_projected == 2

    @pytest.mark.asyncio
    async def test_caught_up_returns_none(self, make_worker, chain, store):
        chain.head = 30
        worker = make_worker()

        await worker.run_cycle()
        assert await worker.run_cycle() is None
        assert store.checkpoint("test") == 28

    @pytest.mark.asyncio
    async def test_empty_range_still_advances_checkpoint(self, make_worker, chain, store):
        chain.head = 12
        worker = make_worker()

        batch = await worker.run_cycle()

        assert len(batch) == 0
        assert store.checkpoint("test") == 10
        assert store.tables.event_logs == {}

    @pytest.mark.asyncio
    async def test_start_block_used_on_first_run(self, make_worker, chain, store):
        chain.head = 1002
        worker = make_worker(start_block=950)

        batch = await worker.run_cycle()

        assert (batch.from_block, batch.to_block) == (950, 1000)
        assert chain.get_logs_calls() == [(950, 1000)]

    @pytest.mark.asyncio
    async def test_stale_checkpoint_is_refused(self, make_worker, chain, store):
        # Another process already committed past our in-memory cursor
        await CheckpointTracker(store, "test").commit(60)
        chain.head = 102
        worker = make_worker()
        worker.next_block = 1

        with pytest.raises(StaleCheckpoint):
            await worker.run_cycle()

        assert store.checkpoint("test") == 60


class TestCrashRecovery:

    @pytest.mark.asyncio
    async def test_restart_resumes_after_checkpoint_without_duplicates(self, make_worker, chain, store, logs):
        chain.head = 122
        chain.add(logs.research_minted(1, block=100), logs.research_minted(2, block=110))
        worker = make_worker()
        await worker.run_cycle()
        await worker.run_cycle()
        assert store.checkpoint("test") == 120

        chain.head = 152
        chain.add(
            logs.research_minted(3, block=130),
            logs.research_minted(4, block=140),
            logs.research_cited(citing=4, cited=1, block=150),
        )
        store.fail_on_commit = OSError("server closed the connection unexpectedly")

        with pytest.raises(OSError):
            await worker.run_cycle()

        # Nothing from 121-150 survived the rollback
        assert store.checkpoint("test") == 120
        assert set(store.tables.research) == {"1", "2"}
        assert len(store.tables.event_logs) == 2

        restarted = make_worker()
        batch = await restarted.run_cycle()

        assert (batch.from_block, batch.to_block) == (121, 150)
        assert store.checkpoint("test") == 150
        assert set(store.tables.research) == {"1", "2", "3", "4"}
        assert len(store.tables.event_logs) == 5
        assert store.tables.research["1"].citation_count == 1

    @pytest.mark.asyncio
    async def test_replay_below_checkpoint_is_harmless(self, make_worker, chain, store, logs):
        chain.head = 52
        chain.add(logs.research_minted(1, block=10), logs.research_cited(citing=1, cited=1, block=11))
        worker = make_worker()
        await worker.run_cycle()

        # Checkpoint lost, events already projected
        store.tables.checkpoints.clear()
        replay = make_worker()
        await replay.run_cycle()

        assert store.tables.research["1"].citation_count == 1
        assert len(store.tables.event_logs) == 2
        assert store.checkpoint("test") == 50


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_rpc_down_exhausts_budget_and_fails(self, make_worker, chain, store):
        chain.down = True
        worker = make_worker()

        await run_until_done(worker)

        assert worker.state is S.FAILED
        assert (S.RUNNING, S.BACKOFF) in worker.machine.history
        assert worker.machine.history[-1] == (S.BACKOFF, S.FAILED)
        assert worker.consecutive_failures == 4
        assert "connection refused" in worker.last_error
        assert store.checkpoint("test") is None

    @pytest.mark.asyncio
    async def test_state_corruption_fails_immediately(self, make_worker, chain, store, logs):
        chain.head = 12
        chain.add(
            logs.research_minted(1, block=5, content=b"\x01" * 32),
            logs.research_minted(1, block=6, content=b"\x02" * 32),
        )
        worker = make_worker()

        await run_until_done(worker)

        assert worker.state is S.FAILED
        assert worker.machine.history[-1] == (S.RUNNING, S.FAILED)
        assert "state corruption" in worker.last_error
        assert store.tables.research == {}
        assert store.checkpoint("test") is None

    @pytest.mark.asyncio
    async def test_startup_failure_within_budget_then_failed(self, make_worker, store):
        store.down = True
        worker = make_worker()

        await run_until_done(worker)

        assert worker.state is S.FAILED
        assert worker.machine.history == [(S.STOPPED, S.STARTING), (S.STARTING, S.FAILED)]

    @pytest.mark.asyncio
    async def test_backoff_then_recovery(self, make_worker, chain, store):
        chain.head = 52
        chain.fail_with(*[TransientRPCError("connection reset")] * 3)
        worker = make_worker()

        task = asyncio.create_task(worker.start())
        await wait_until(lambda: worker.state is S.RUNNING and store.checkpoint("test") == 50)

        assert (S.RUNNING, S.BACKOFF) in worker.machine.history
        assert (S.BACKOFF, S.RUNNING) in worker.machine.history
        assert worker.consecutive_failures == 0
        assert worker.cycles_failed == 1

        worker.stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert worker.state is S.STOPPED

    @pytest.mark.asyncio
    async def test_stop_interrupts_poll_wait(self, make_worker, chain):
        worker = make_worker(poll_interval=60.0)

        task = asyncio.create_task(worker.start())
        await wait_until(lambda: worker.state is S.RUNNING and chain.calls)

        worker.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert worker.state is S.STOPPED
        assert worker.machine.history[-2:] == [(S.RUNNING, S.STOPPING), (S.STOPPING, S.STOPPED)]

    @pytest.mark.asyncio
    async def test_reset_after_failure(self, make_worker, chain):
        chain.down = True
        worker = make_worker()
        await run_until_done(worker)

        worker.reset()

        assert worker.state is S.STOPPED
        assert worker.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_stop_is_noop_when_not_running(self, make_worker):
        worker = make_worker()
        worker.stop()
        assert worker.state is S.STOPPED


class TestNotifications:

    @pytest.mark.asyncio
    async def test_committed_batch_published(self, make_worker, chain, logs):
        chain.head = 52
        chain.add(logs.research_minted(1, block=10))
        queue = RecordingQueue()
        worker = make_worker(job_queue=queue)

        await worker.run_cycle()

        assert queue.published == [("test", 1, 50, 1, 1)]

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_cycle(self, make_worker, chain, store):
        chain.head = 52
        worker = make_worker(job_queue=RecordingQueue(error=RedisConnectionError("down")))

        batch = await worker.run_cycle()

        assert batch is not None
        assert store.checkpoint("test") == 50


class TestStatus:

    @pytest.mark.asyncio
    async def test_status_snapshot(self, make_worker, chain):
        chain.head = 52
        worker = make_worker()
        await worker.run_cycle()

        status = worker.status()

        assert status['name'] == "test"
        assert status['state'] == "stopped"
        assert status['last_processed_block'] == 50
        assert status['next_block'] == 51
        assert status['batches_processed'] == 1
        assert status['last_batch_at'] is not None
