"""
PostgresStore - pool owner and transaction boundary for the projector

Reads (API, health) go through repositories bound to the pool.
Writes go through a StoreSession: every repository bound to one
connection inside one transaction, so a batch's projections, its
event_logs rows and the checkpoint advance commit or roll back together.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import asyncpg

from .checkpoint_repository import CheckpointRepository
from .dataset_repository import DatasetRepository
from .event_log_repository import EventLogRepository
from .research_repository import ResearchRepository
from .user_repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass
class StoreSession:
    """Repositories sharing one transactional connection"""
    events: EventLogRepository
    checkpoints: CheckpointRepository
    research: ResearchRepository
    datasets: DatasetRepository
    users: UserRepository

    @classmethod
    def bind(cls, db) -> 'StoreSession':
        return cls(
            events=EventLogRepository(db),
            checkpoints=CheckpointRepository(db),
            research=ResearchRepository(db),
            datasets=DatasetRepository(db),
            users=UserRepository(db),
        )


class PostgresStore:

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool
        self.read = StoreSession.bind(pool)

    @property
    def research(self) -> ResearchRepository:
        return self.read.research

    @property
    def datasets(self) -> DatasetRepository:
        return self.read.datasets

    @property
    def users(self) -> UserRepository:
        return self.read.users

    @property
    def checkpoints(self) -> CheckpointRepository:
        return self.read.checkpoints

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        """
        Open a transaction and yield a session bound to it.

        Commits on normal exit; any exception rolls back and propagates.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield StoreSession.bind(conn)

    async def ping(self) -> bool:
        """True when the database answers a trivial query"""
        try:
            return await self.pool.fetchval("SELECT 1") == 1
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def max_event_block(self) -> int:
        """Highest block with a recorded event (0 when none)"""
        value = await self.pool.fetchval("SELECT MAX(block_number) FROM event_logs")
        return value or 0
