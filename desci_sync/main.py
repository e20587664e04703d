"""
DeSci Chain Sync - FastAPI Backend

Serves the read API and, unless ENABLE_LISTENER=false, runs the chain
listeners in the same process.

    uvicorn desci_sync.main:app --host 0.0.0.0 --port 8000
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from .api import datasets, health, research
from .config import Settings, create_job_queue, create_postgres_pool, get_settings, run_migrations
from .repositories import PostgresStore
from .services.chain_rpc import ChainRPCClient
from .workers.manager import ListenerManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s'
    )

    pool = await create_postgres_pool(settings)
    if settings.run_migrations:
        applied = await run_migrations(pool)
        logger.info(f"✅ {applied} migration file(s) applied")

    app.state.store = PostgresStore(pool)
    app.state.listeners = None

    rpc = ChainRPCClient(settings.chain_rpc_url, timeout=settings.rpc_timeout_seconds)
    job_queue = None

    if settings.enable_listener:
        try:
            job_queue = await create_job_queue(settings)
        except (RedisError, OSError) as e:
            logger.warning(f"⚠️  Batch notifications disabled, Redis unavailable: {e}")

        manager = ListenerManager(settings, app.state.store, rpc, job_queue=job_queue)
        await manager.start_all()
        app.state.listeners = manager
    else:
        logger.info("Listener disabled (ENABLE_LISTENER=false), serving reads only")

    try:
        yield
    finally:
        if app.state.listeners is not None:
            await app.state.listeners.stop_all(timeout=30)
        await rpc.close()
        if job_queue is not None:
            await job_queue.close()
        await pool.close()
        logger.info("Shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="DeSci Chain Sync",
        description="Chain-to-database sync layer and read API for the DeSci platform",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(research.router, prefix="/api", tags=["Research"])
    app.include_router(datasets.router, prefix="/api", tags=["Datasets"])

    return app


app = create_app()
