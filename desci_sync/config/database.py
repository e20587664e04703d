"""
Database Configuration
======================

Centralized connection configuration for the listener and the API.
Handles the PostgreSQL projection store and the optional Redis
notification queue.
"""
import logging
from pathlib import Path
from typing import List, Optional
from dataclasses import dataclass

import asyncpg

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / 'migrations'


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""
    dsn: str
    min_size: int = 2
    max_size: int = 10
    command_timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'PostgresConfig':
        """Create config from application settings."""
        settings = settings or get_settings()
        return cls(
            dsn=settings.database_url,
            min_size=settings.postgres_pool_min,
            max_size=settings.postgres_pool_max,
        )

    def to_asyncpg_kwargs(self) -> dict:
        """Convert to asyncpg.create_pool kwargs."""
        return {
            'dsn': self.dsn,
            'min_size': self.min_size,
            'max_size': self.max_size,
            'command_timeout': self.command_timeout,
        }


@dataclass
class RedisConfig:
    """Redis connection configuration."""
    url: str
    queue: str

    @property
    def enabled(self) -> bool:
        return bool(self.queue)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'RedisConfig':
        settings = settings or get_settings()
        return cls(url=settings.redis_url, queue=settings.notify_queue)


def get_postgres_config(settings: Optional[Settings] = None) -> PostgresConfig:
    """Get PostgreSQL configuration from settings."""
    return PostgresConfig.from_settings(settings)


def get_redis_config(settings: Optional[Settings] = None) -> RedisConfig:
    """Get Redis configuration from settings."""
    return RedisConfig.from_settings(settings)


async def create_postgres_pool(settings: Optional[Settings] = None) -> asyncpg.Pool:
    """Create PostgreSQL connection pool from settings."""
    config = get_postgres_config(settings)
    return await asyncpg.create_pool(**config.to_asyncpg_kwargs())


async def create_job_queue(settings: Optional[Settings] = None):
    """
    Create and connect the Redis notification queue.

    Returns None when notifications are disabled (NOTIFY_QUEUE unset).
    """
    from ..services.job_queue import JobQueue
    config = get_redis_config(settings)
    if not config.enabled:
        return None
    queue = JobQueue(config.url, config.queue)
    await queue.connect()
    return queue


def get_migration_files(migrations_dir: Path = MIGRATIONS_DIR) -> List[Path]:
    """SQL migration files sorted by file name."""
    return sorted(p for p in migrations_dir.glob('*.sql') if p.is_file())


async def run_migrations(pool: asyncpg.Pool, migrations_dir: Path = MIGRATIONS_DIR) -> int:
    """
    Apply every migration file in order, each in its own transaction.

    Migrations are written to be re-runnable (CREATE ... IF NOT EXISTS).

    Returns:
        Number of files applied
    """
    files = get_migration_files(migrations_dir)
    if not files:
        raise FileNotFoundError(f"No migration files found in {migrations_dir}")

    async with pool.acquire() as conn:
        for path in files:
            sql = path.read_text(encoding='utf-8')
            async with conn.transaction():
                await conn.execute(sql)
            logger.info(f"Applied migration {path.name}")

    return len(files)
