"""
PostgresStore integration tests: SQL repositories, transactions and a
full worker cycle against a real database.
"""
from dataclasses import replace

import pytest
from eth_utils import keccak

from desci_sync.services.checkpoint import CheckpointTracker
from desci_sync.services.errors import StaleCheckpoint, StateCorruption
from desci_sync.services.event_decoder import EventDecoder
from desci_sync.services.log_reader import EventLogReader
from desci_sync.services.projector import EventProjector, Outcome
from desci_sync.services.retry import RetryPolicy
from desci_sync.workers.sync_worker import ChainSyncWorker

from ..fakes import ALICE, BOB, CAROL, DATASETS, REGISTRY, WATCHED, FakeChain, LogFactory, block_time

pytestmark = pytest.mark.integration

decoder = EventDecoder()


def chain_events(*raw_logs):
    return [
        replace(e, block_timestamp=block_time(e.block_number))
        for e in (decoder.decode_log(raw) for raw in raw_logs)
    ]


async def project(store, events, listener_name="test"):
    async with store.transaction() as session:
        return await EventProjector(decoder, listener_name).project_batch(session, events)


@pytest.mark.asyncio
async def test_projection_round_trip(pg_store):
    logs = LogFactory()
    huge = 2 ** 200
    await project(pg_store, chain_events(
        logs.user_registered(ALICE, block=1, name="Alice", role=1),
        logs.log('ReputationUpdated', REGISTRY, 2, user=ALICE, oldReputation=0, newReputation=huge, reason="x"),
        logs.research_minted(7, block=3, content=keccak(text="body"), authors=(ALICE, BOB)),
        logs.research_cited(citing=7, cited=7, block=4),
        logs.peer_review(7, block=5, reviewer=CAROL, anonymous=True),
        logs.dataset_uploaded(9, block=6, price=huge),
        logs.log('DatasetAccessPurchased', DATASETS, 7, datasetId=9, buyer=BOB, amount=huge),
    ))

    user = await pg_store.users.get_by_address(ALICE)
    assert user.reputation == huge
    assert user.role == 1
    assert user.registered_at == block_time(1)

    record = await pg_store.research.get_by_token_id("7")
    assert record.authors == [ALICE, BOB]
    assert record.content_hash == "0x" + keccak(text="body").hex()
    assert (record.citation_count, record.review_count) == (1, 1)
    assert record.created_at == block_time(3)

    reviews = await pg_store.research.list_reviews("7")
    assert reviews[0].is_anonymous
    assert reviews[0].public_reviewer is None

    dataset = await pg_store.datasets.get_by_id("9")
    assert dataset.access_price == huge
    assert dataset.revenue == huge
    assert dataset.download_count == 1

    assert await pg_store.max_event_block() == 7
    assert await pg_store.ping()


@pytest.mark.asyncio
async def test_replay_is_duplicate(pg_store):
    logs = LogFactory()
    events = chain_events(logs.research_minted(1, block=1), logs.research_cited(citing=1, cited=1, block=2))
    await project(pg_store, events)

    stats = await project(pg_store, events)

    assert stats.counts[Outcome.DUPLICATE] == 2
    assert (await pg_store.research.get_by_token_id("1")).citation_count == 1


@pytest.mark.asyncio
async def test_conflict_rolls_back_batch(pg_store):
    logs = LogFactory()
    await project(pg_store, chain_events(logs.research_minted(1, block=1, content=keccak(text="a"))))

    with pytest.raises(StateCorruption):
        await project(pg_store, chain_events(
            logs.research_minted(2, block=2),
            logs.research_minted(1, block=3, content=keccak(text="b")),
        ))

    assert await pg_store.research.get_by_token_id("2") is None
    assert await pg_store.research.count() == 1
    assert await pg_store.max_event_block() == 1


@pytest.mark.asyncio
async def test_latest_and_by_author_ordering(pg_store):
    logs = LogFactory()
    await project(pg_store, chain_events(
        logs.research_minted(1, block=10, authors=(ALICE,)),
        logs.research_minted(2, block=11, authors=(ALICE, BOB)),
        logs.research_minted(3, block=11, authors=(BOB,), log_index=1),
    ))

    latest = await pg_store.research.list_latest(limit=2)
    assert [r.token_id for r in latest] == ["3", "2"]

    by_bob = await pg_store.research.list_by_author(BOB)
    assert [r.token_id for r in by_bob] == ["3", "2"]


@pytest.mark.asyncio
async def test_checkpoint_only_moves_forward(pg_store):
    tracker = CheckpointTracker(pg_store, "test")
    assert await tracker.resume_block(0) == 1

    await tracker.commit(120)
    with pytest.raises(StaleCheckpoint):
        await tracker.commit(100)

    async with pg_store.transaction() as session:
        assert await session.checkpoints.advance("test", 90) is False

    assert await tracker.get() == 120
    assert await tracker.resume_block(0) == 121


@pytest.mark.asyncio
async def test_worker_cycle_commits_batch_and_checkpoint(pg_store):
    logs = LogFactory()
    chain = FakeChain(head=52)
    chain.add(logs.research_minted(1, block=10), logs.dataset_uploaded(2, block=20))
    policy = RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0)
    reader = EventLogReader(chain, WATCHED, decoder=decoder, confirmations=2, batch_size=100, retry_policy=policy)
    worker = ChainSyncWorker("test", reader, pg_store, backoff=policy)

    await worker.run_cycle()

    checkpoint = await pg_store.checkpoints.get("test")
    assert checkpoint.last_processed_block == 50
    assert await pg_store.research.get_by_token_id("1") is not None
    assert await pg_store.datasets.get_by_id("2") is not None
    assert len(await pg_store.read.events.list_range(1, 50)) == 2


@pytest.mark.asyncio
async def test_child_rows_and_ledger_lookups(pg_store):
    logs = LogFactory()
    cite = logs.log('DatasetCited', DATASETS, 2, datasetId=9, citer=BOB, citingWorkHash="QmWork")
    await project(pg_store, chain_events(logs.dataset_uploaded(9, block=1), cite))
    await CheckpointTracker(pg_store, "a").commit(5)
    await CheckpointTracker(pg_store, "b").commit(7)

    citations = await pg_store.datasets.list_citations("9")
    assert [(c.citer, c.citing_work_hash) for c in citations] == [(BOB, "QmWork")]
    assert await pg_store.read.events.exists(cite['transactionHash'], 0)
    assert not await pg_store.read.events.exists(cite['transactionHash'], 1)
    assert [(c.listener_name, c.last_processed_block) for c in await pg_store.checkpoints.list_all()] == [
        ("a", 5), ("b", 7),
    ]
