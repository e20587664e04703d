"""
Event Projector

Maps each ChainEvent onto idempotent writes against the projection store.
Runs inside the batch transaction opened by the sync worker: every write
goes through the StoreSession it is handed, never through the pool.

Per event:
1. Record (tx_hash, log_index) in event_logs; already there → DUPLICATE
2. Decode to a typed variant; malformed → SKIPPED, unsupported → UNKNOWN
3. Dispatch to the variant's handler

Natural-key collisions (same token/dataset id from a different log):
identical immutable content → NOOP, differing content → StateCorruption.
Counter events whose parent row is missing → ORPHAN (recorded, skipped).
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional

from .errors import DecodeError, StateCorruption
from .event_decoder import EventDecoder
from ..models.domain import (
    ChainEvent,
    DomainEvent,
    UserRegistered,
    ReputationUpdated,
    DatasetUploaded,
    DatasetAccessPurchased,
    DatasetCited,
    ResearchMinted,
    ResearchCited,
    PeerReviewSubmitted,
    UnknownEvent,
    ResearchRecord,
    ResearchCitation,
    PeerReview,
    DatasetRecord,
    DatasetCitation,
    UserProfile,
)

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"  # event already in event_logs
    NOOP = "noop"            # natural key already projected with same content
    SKIPPED = "skipped"      # malformed args
    UNKNOWN = "unknown"      # unsupported event type
    ORPHAN = "orphan"        # parent row missing


@dataclass
class ProjectionStats:
    """Outcome counts for one batch"""
    counts: Dict[Outcome, int] = field(default_factory=lambda: {o: 0 for o in Outcome})

    def add(self, outcome: Outcome):
        self.counts[outcome] += 1

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def applied(self) -> int:
        return self.counts[Outcome.APPLIED]

    def summary(self) -> str:
        return ", ".join(f"{o.value}={n}" for o, n in self.counts.items() if n)


class EventProjector:
    """
    Applies decoded events to a StoreSession.

    Args:
        decoder: Used for the ChainEvent → typed variant step
        listener_name: Stamped on event_logs rows
    """

    def __init__(self, decoder: Optional[EventDecoder] = None, listener_name: str = "desci-main"):
        self.decoder = decoder or EventDecoder()
        self.listener_name = listener_name
        self._handlers = {
            UserRegistered: self._on_user_registered,
            ReputationUpdated: self._on_reputation_updated,
            DatasetUploaded: self._on_dataset_uploaded,
            DatasetAccessPurchased: self._on_dataset_purchased,
            DatasetCited: self._on_dataset_cited,
            ResearchMinted: self._on_research_minted,
            ResearchCited: self._on_research_cited,
            PeerReviewSubmitted: self._on_peer_review,
        }

    async def project_batch(self, session, events: Iterable[ChainEvent]) -> ProjectionStats:
        """Project events in (block_number, log_index) order"""
        stats = ProjectionStats()
        for event in sorted(events, key=lambda e: e.sort_key):
            stats.add(await self.project(session, event))
        return stats

    async def project(self, session, event: ChainEvent) -> Outcome:
        """
        Project a single event.

        Raises:
            StateCorruption: natural key already projected with different content
        """
        first_seen = await session.events.record(event, self.listener_name)
        if not first_seen:
            logger.debug(f"[{self.listener_name}] {event} already projected")
            return Outcome.DUPLICATE

        try:
            domain_event = self.decoder.to_domain_event(event)
        except DecodeError as e:
            logger.warning(f"[{self.listener_name}] Skipping {event}: {e}")
            return Outcome.SKIPPED

        if isinstance(domain_event, UnknownEvent):
            logger.info(f"[{self.listener_name}] Skipping {event}: {domain_event.reason}")
            return Outcome.UNKNOWN

        handler = self._handlers[type(domain_event)]
        return await handler(session, domain_event)

    # =========================================================================
    # DeSciRegistry
    # =========================================================================

    async def _on_user_registered(self, session, e: UserRegistered) -> Outcome:
        src = e.source
        await session.users.upsert(UserProfile(
            address=e.user,
            tx_hash=src.transaction_hash,
            block_number=src.block_number,
            name=e.name,
            organization=e.organization,
            email=e.email,
            research_fields=e.research_fields,
            credentials_hash=e.credentials_hash,
            role=e.role,
            registered_at=src.block_timestamp,
        ))
        return Outcome.APPLIED

    async def _on_reputation_updated(self, session, e: ReputationUpdated) -> Outcome:
        if not await session.users.set_reputation(e.user, e.new_reputation):
            return self._orphan(e, f"user {e.user}")
        return Outcome.APPLIED

    # =========================================================================
    # DatasetManager
    # =========================================================================

    async def _on_dataset_uploaded(self, session, e: DatasetUploaded) -> Outcome:
        src = e.source
        record = DatasetRecord(
            dataset_id=e.dataset_id,
            uploader=e.uploader,
            title=e.title,
            tx_hash=src.transaction_hash,
            block_number=src.block_number,
            ipfs_hash=e.ipfs_hash,
            access_price=e.access_price,
            created_at=src.block_timestamp,
        )
        if await session.datasets.insert(record):
            return Outcome.APPLIED

        existing = await session.datasets.get_by_id(e.dataset_id)
        if existing is not None and existing.same_content(record):
            logger.info(f"[{self.listener_name}] Dataset {e.dataset_id} already projected, {src} is a no-op")
            return Outcome.NOOP
        raise StateCorruption(
            f"dataset {e.dataset_id} from {src} differs from the row projected at "
            f"{existing.tx_hash if existing else '?'}"
        )

    async def _on_dataset_purchased(self, session, e: DatasetAccessPurchased) -> Outcome:
        if not await session.datasets.record_purchase(e.dataset_id, e.amount):
            return self._orphan(e, f"dataset {e.dataset_id}")
        return Outcome.APPLIED

    async def _on_dataset_cited(self, session, e: DatasetCited) -> Outcome:
        if await session.datasets.get_by_id(e.dataset_id) is None:
            return self._orphan(e, f"dataset {e.dataset_id}")

        src = e.source
        added = await session.datasets.add_citation(DatasetCitation(
            tx_hash=src.transaction_hash,
            log_index=src.log_index,
            dataset_id=e.dataset_id,
            citer=e.citer,
            block_number=src.block_number,
            citing_work_hash=e.citing_work_hash,
        ))
        return Outcome.APPLIED if added else Outcome.NOOP

    # =========================================================================
    # ResearchNFT
    # =========================================================================

    async def _on_research_minted(self, session, e: ResearchMinted) -> Outcome:
        src = e.source
        record = ResearchRecord(
            token_id=e.token_id,
            title=e.title,
            content_hash=e.content_hash,
            tx_hash=src.transaction_hash,
            block_number=src.block_number,
            log_index=src.log_index,
            created_at=src.block_timestamp,
            authors=list(e.authors),
            ipfs_metadata_hash=e.metadata_hash,
        )
        if await session.research.insert(record):
            return Outcome.APPLIED

        existing = await session.research.get_by_token_id(e.token_id)
        if existing is not None and existing.same_content(record):
            logger.info(f"[{self.listener_name}] Research {e.token_id} already projected, {src} is a no-op")
            return Outcome.NOOP
        raise StateCorruption(
            f"research token {e.token_id} from {src} differs from the row projected at "
            f"{existing.tx_hash if existing else '?'}"
        )

    async def _on_research_cited(self, session, e: ResearchCited) -> Outcome:
        if await session.research.get_by_token_id(e.cited_token_id) is None:
            return self._orphan(e, f"research {e.cited_token_id}")

        src = e.source
        added = await session.research.add_citation(ResearchCitation(
            tx_hash=src.transaction_hash,
            log_index=src.log_index,
            citing_token_id=e.citing_token_id,
            cited_token_id=e.cited_token_id,
            citer=e.citer,
            block_number=src.block_number,
        ))
        return Outcome.APPLIED if added else Outcome.NOOP

    async def _on_peer_review(self, session, e: PeerReviewSubmitted) -> Outcome:
        if await session.research.get_by_token_id(e.token_id) is None:
            return self._orphan(e, f"research {e.token_id}")

        src = e.source
        added = await session.research.add_review(PeerReview(
            tx_hash=src.transaction_hash,
            log_index=src.log_index,
            token_id=e.token_id,
            reviewer=e.reviewer,
            score=e.score,
            block_number=src.block_number,
            review_hash=e.review_hash,
            is_anonymous=e.is_anonymous,
        ))
        return Outcome.APPLIED if added else Outcome.NOOP

    def _orphan(self, e: DomainEvent, parent: str) -> Outcome:
        logger.warning(f"[{self.listener_name}] ⚠️  {e.source} references unknown {parent}, skipping")
        return Outcome.ORPHAN
