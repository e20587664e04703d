"""
Tests for the event projector: mappings, idempotence, ordering,
natural-key conflicts and orphaned counter events.
"""
from dataclasses import replace

import pytest
from eth_utils import keccak

from desci_sync.services.errors import StateCorruption
from desci_sync.services.event_decoder import EventDecoder
from desci_sync.services.projector import EventProjector, Outcome

from .fakes import ALICE, BOB, CAROL, DATASETS, REGISTRY, block_time

decoder = EventDecoder()


def chain_events(*raw_logs):
    """Decode raw logs and stamp block timestamps like the reader does"""
    out = []
    for raw in raw_logs:
        event = decoder.decode_log(raw)
        out.append(replace(event, block_timestamp=block_time(event.block_number)))
    return out


@pytest.fixture
def projector():
    return EventProjector(decoder, listener_name="test")


async def project(store, projector, events):
    async with store.transaction() as session:
        return await projector.project_batch(session, events)


class TestResearch:

    @pytest.mark.asyncio
    async def test_mint_creates_record(self, store, projector, logs):
        content = keccak(text="paper")
        stats = await project(store, projector, chain_events(
            logs.research_minted(1, block=10, content=content, authors=(ALICE, BOB), title="Genome"),
        ))

        assert stats.applied == 1
        record = store.tables.research["1"]
        assert record.title == "Genome"
        assert record.authors == [ALICE, BOB]
        assert record.content_hash == "0x" + content.hex()
        assert record.created_at == block_time(10)
        assert record.block_number == 10

    @pytest.mark.asyncio
    async def test_citation_and_review_counters(self, store, projector, logs):
        await project(store, projector, chain_events(
            logs.research_minted(1, block=10),
            logs.research_minted(2, block=11),
            logs.research_cited(citing=2, cited=1, block=12),
            logs.research_cited(citing=2, cited=1, block=13),
            logs.peer_review(1, block=14, reviewer=CAROL, score=5),
        ))

        record = store.tables.research["1"]
        assert record.citation_count == 2
        assert record.review_count == 1
        assert store.tables.research["2"].citation_count == 0
        assert len(store.tables.research_citations) == 2
        assert len(store.tables.research_reviews) == 1

    @pytest.mark.asyncio
    async def test_out_of_order_input_projected_in_chain_order(self, store, projector, logs):
        events = chain_events(
            logs.research_minted(1, block=10),
            logs.research_cited(citing=1, cited=1, block=11),
        )

        stats = await project(store, projector, list(reversed(events)))

        assert stats.counts[Outcome.APPLIED] == 2
        assert store.tables.research["1"].citation_count == 1


class TestIdempotence:

    @pytest.mark.asyncio
    async def test_replaying_a_batch_changes_nothing(self, store, projector, logs):
        events = chain_events(
            logs.research_minted(1, block=10),
            logs.research_cited(citing=1, cited=1, block=11),
            logs.dataset_uploaded(4, block=12),
            logs.log('DatasetAccessPurchased', DATASETS, 13, datasetId=4, buyer=BOB, amount=5),
        )
        await project(store, projector, events)
        before = (
            store.tables.research["1"].citation_count,
            store.tables.datasets["4"].download_count,
            store.tables.datasets["4"].revenue,
            len(store.tables.event_logs),
        )

        stats = await project(store, projector, events)

        assert stats.counts[Outcome.DUPLICATE] == 4
        assert stats.applied == 0
        after = (
            store.tables.research["1"].citation_count,
            store.tables.datasets["4"].download_count,
            store.tables.datasets["4"].revenue,
            len(store.tables.event_logs),
        )
        assert after == before == (1, 1, 5, 4)

    @pytest.mark.asyncio
    async def test_same_mint_from_other_log_is_noop(self, store, projector, logs):
        content = keccak(text="paper")
        first = logs.research_minted(1, block=10, content=content)
        again = logs.research_minted(1, block=20, content=content)

        await project(store, projector, chain_events(first))
        stats = await project(store, projector, chain_events(again))

        assert stats.counts[Outcome.NOOP] == 1
        assert store.tables.research["1"].block_number == 10

    @pytest.mark.asyncio
    async def test_conflicting_mint_is_state_corruption(self, store, projector, logs):
        await project(store, projector, chain_events(
            logs.research_minted(1, block=10, content=keccak(text="a")),
        ))

        with pytest.raises(StateCorruption):
            await project(store, projector, chain_events(
                logs.research_minted(1, block=20, content=keccak(text="b")),
            ))

        # The failing batch rolled back entirely, including its event_logs row
        assert store.tables.research["1"].content_hash == "0x" + keccak(text="a").hex()
        assert len(store.tables.event_logs) == 1

    @pytest.mark.asyncio
    async def test_conflicting_dataset_uploader(self, store, projector, logs):
        await project(store, projector, chain_events(logs.dataset_uploaded(4, block=1, uploader=ALICE)))

        with pytest.raises(StateCorruption):
            await project(store, projector, chain_events(logs.dataset_uploaded(4, block=2, uploader=BOB)))


class TestDatasetsAndUsers:

    @pytest.mark.asyncio
    async def test_dataset_lifecycle(self, store, projector, logs):
        await project(store, projector, chain_events(
            logs.dataset_uploaded(4, block=1, price=10),
            logs.log('DatasetAccessPurchased', DATASETS, 2, datasetId=4, buyer=BOB, amount=10),
            logs.log('DatasetAccessPurchased', DATASETS, 3, datasetId=4, buyer=CAROL, amount=10),
            logs.log('DatasetCited', DATASETS, 4, datasetId=4, citer=BOB, citingWorkHash="QmWork"),
        ))

        dataset = store.tables.datasets["4"]
        assert dataset.access_price == 10
        assert dataset.download_count == 2
        assert dataset.revenue == 20
        assert dataset.citation_count == 1
        assert dataset.created_at == block_time(1)

    @pytest.mark.asyncio
    async def test_user_registration_and_reputation(self, store, projector, logs):
        await project(store, projector, chain_events(
            logs.user_registered(ALICE, block=1, name="Alice", role=0),
            logs.log('ReputationUpdated', REGISTRY, 2,
                     user=ALICE, oldReputation=0, newReputation=150, reason="review"),
            logs.user_registered(ALICE, block=3, name="Dr. Alice", role=2),
        ))

        user = store.tables.users[ALICE]
        assert user.name == "Dr. Alice"
        assert user.role == 2
        assert user.reputation == 150
        assert user.registered_at == block_time(1)


class TestSkips:

    @pytest.mark.asyncio
    async def test_orphan_counter_event_recorded_and_skipped(self, store, projector, logs):
        stats = await project(store, projector, chain_events(
            logs.research_cited(citing=2, cited=99, block=5),
            logs.peer_review(99, block=6),
            logs.log('DatasetAccessPurchased', DATASETS, 7, datasetId=8, buyer=BOB, amount=1),
        ))

        assert stats.counts[Outcome.ORPHAN] == 3
        assert len(store.tables.event_logs) == 3
        assert store.tables.research_citations == {}

    @pytest.mark.asyncio
    async def test_unknown_event_recorded_and_skipped(self, store, projector, logs):
        raw = logs.research_minted(1, block=5)
        raw['topics'][0] = "0x" + "ee" * 32

        stats = await project(store, projector, chain_events(raw))

        assert stats.counts[Outcome.UNKNOWN] == 1
        assert store.tables.research == {}
        assert len(store.tables.event_logs) == 1

    @pytest.mark.asyncio
    async def test_events_after_unknown_still_projected(self, store, projector, logs):
        unknown = logs.research_minted(1, block=5)
        unknown['topics'][0] = "0x" + "ee" * 32

        stats = await project(store, projector, chain_events(unknown, logs.research_minted(2, block=6)))

        assert stats.counts[Outcome.UNKNOWN] == 1
        assert stats.applied == 1
        assert "2" in store.tables.research
