"""
Domain Models - Storage-agnostic data structures

Listener, projector and API operate on these dataclasses, never on raw
database rows or raw RPC logs.

- ChainEvent: decoded contract log (input side)
- Typed events: closed set of variants the projector dispatches on
- Records: projected rows (research, datasets, users, child collections)
- SyncCheckpoint: per-listener progress marker
"""

from .chain_event import ChainEvent
from .events import (
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
)
from .research import ResearchRecord, ResearchCitation, PeerReview
from .dataset import DatasetRecord, DatasetCitation
from .user import UserProfile, UserRole
from .checkpoint import SyncCheckpoint, VerificationResult

__all__ = [
    # Input side
    'ChainEvent',

    # Typed events
    'DomainEvent',
    'UserRegistered',
    'ReputationUpdated',
    'DatasetUploaded',
    'DatasetAccessPurchased',
    'DatasetCited',
    'ResearchMinted',
    'ResearchCited',
    'PeerReviewSubmitted',
    'UnknownEvent',

    # Projections
    'ResearchRecord',
    'ResearchCitation',
    'PeerReview',
    'DatasetRecord',
    'DatasetCitation',
    'UserProfile',
    'UserRole',

    # Sync state
    'SyncCheckpoint',
    'VerificationResult',
]
