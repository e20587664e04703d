"""
Typed domain events

Closed set of variants produced by the decode step. Each variant keeps a
reference to the ChainEvent it was built from so the projector can key
child rows by (tx_hash, log_index) and stamp block metadata.

Anything the registry does not know becomes UnknownEvent, which the
projector logs and skips.
"""
from dataclasses import dataclass
from typing import Tuple

from .chain_event import ChainEvent


@dataclass(frozen=True)
class DomainEvent:
    source: ChainEvent


# =============================================================================
# DeSciRegistry
# =============================================================================

@dataclass(frozen=True)
class UserRegistered(DomainEvent):
    user: str
    name: str
    organization: str
    email: str
    research_fields: str
    credentials_hash: str
    role: int


@dataclass(frozen=True)
class ReputationUpdated(DomainEvent):
    user: str
    old_reputation: int
    new_reputation: int
    reason: str


# =============================================================================
# DatasetManager
# =============================================================================

@dataclass(frozen=True)
class DatasetUploaded(DomainEvent):
    dataset_id: str
    uploader: str
    title: str
    ipfs_hash: str
    access_price: int


@dataclass(frozen=True)
class DatasetAccessPurchased(DomainEvent):
    dataset_id: str
    buyer: str
    amount: int


@dataclass(frozen=True)
class DatasetCited(DomainEvent):
    dataset_id: str
    citer: str
    citing_work_hash: str


# =============================================================================
# ResearchNFT
# =============================================================================

@dataclass(frozen=True)
class ResearchMinted(DomainEvent):
    token_id: str
    authors: Tuple[str, ...]
    title: str
    content_hash: str
    metadata_hash: str


@dataclass(frozen=True)
class ResearchCited(DomainEvent):
    citing_token_id: str
    cited_token_id: str
    citer: str


@dataclass(frozen=True)
class PeerReviewSubmitted(DomainEvent):
    token_id: str
    reviewer: str
    score: int
    review_hash: str
    is_anonymous: bool


@dataclass(frozen=True)
class UnknownEvent(DomainEvent):
    """Log from a watched contract with no registered variant"""
    reason: str = "unsupported event"
