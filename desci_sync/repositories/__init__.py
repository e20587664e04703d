"""
Repository Pattern - Storage abstraction layer

Repositories hide PostgreSQL details from the projector and the API.
Consumers work with domain models, not asyncpg records.

Storage Split:
- EventLogRepository: event_logs (idempotence ledger)
- CheckpointRepository: sync_checkpoints
- ResearchRepository: research_records + citations + reviews
- DatasetRepository: datasets + dataset_citations
- UserRepository: users

Each repository takes either the pool or a transactional connection.
PostgresStore hands out a StoreSession per batch transaction.
"""
from .checkpoint_repository import CheckpointRepository
from .dataset_repository import DatasetRepository
from .event_log_repository import EventLogRepository
from .research_repository import ResearchRepository
from .user_repository import UserRepository
from .store import PostgresStore, StoreSession

__all__ = [
    'CheckpointRepository',
    'DatasetRepository',
    'EventLogRepository',
    'ResearchRepository',
    'UserRepository',
    'PostgresStore',
    'StoreSession',
]
