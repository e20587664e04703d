"""
Services - chain reading, projection, checkpointing and read-side queries
"""
from .errors import (
    SyncError,
    RPCError,
    TransientRPCError,
    RangeTooLarge,
    DecodeError,
    ProjectionConflict,
    StateCorruption,
    StaleCheckpoint,
    NotFound,
    InvalidTransition,
)
from .retry import RetryPolicy, RetryResult
from .chain_rpc import ChainRPCClient
from .event_abi import EventRegistry, EventSpec, EventParam, PLATFORM_EVENTS
from .event_decoder import EventDecoder
from .log_reader import EventLogReader, EventBatch
from .projector import EventProjector, Outcome, ProjectionStats
from .checkpoint import CheckpointTracker
from .verifier import ContentVerifier, compute_hash, compute_sha256
from .query_service import ResearchQueryService, clamp_limit

__all__ = [
    'SyncError',
    'RPCError',
    'TransientRPCError',
    'RangeTooLarge',
    'DecodeError',
    'ProjectionConflict',
    'StateCorruption',
    'StaleCheckpoint',
    'NotFound',
    'InvalidTransition',
    'RetryPolicy',
    'RetryResult',
    'ChainRPCClient',
    'EventRegistry',
    'EventSpec',
    'EventParam',
    'PLATFORM_EVENTS',
    'EventDecoder',
    'EventLogReader',
    'EventBatch',
    'EventProjector',
    'Outcome',
    'ProjectionStats',
    'CheckpointTracker',
    'ContentVerifier',
    'compute_hash',
    'compute_sha256',
    'ResearchQueryService',
    'clamp_limit',
]
