#!/usr/bin/env python3
"""
Run Chain Listener
==================

Runs the chain listeners without the HTTP API.

Usage:
    python -m desci_sync.run_listener
    python -m desci_sync.run_listener --mode per_contract
    python -m desci_sync.run_listener --start-block 1200 --confirmations 6

SIGTERM/SIGINT stop the listeners after their in-flight batch.
"""
import argparse
import asyncio
import logging
import signal
from pathlib import Path

from dotenv import load_dotenv
from redis.exceptions import RedisError

from .config import Settings, create_job_queue, create_postgres_pool, run_migrations
from .repositories import PostgresStore
from .services.chain_rpc import ChainRPCClient
from .workers.manager import ListenerManager

log = logging.getLogger('desci-listener')


async def run(settings: Settings):
    pool = await create_postgres_pool(settings)
    if settings.run_migrations:
        await run_migrations(pool)

    store = PostgresStore(pool)
    try:
        job_queue = await create_job_queue(settings)
    except (RedisError, OSError) as e:
        log.warning(f"⚠️  Batch notifications disabled, Redis unavailable: {e}")
        job_queue = None

    async with ChainRPCClient(settings.chain_rpc_url, timeout=settings.rpc_timeout_seconds) as rpc:
        manager = ListenerManager(settings, store, rpc, job_queue=job_queue)
        if manager.workers:
            await _run_manager(manager, settings)
        else:
            log.error("❌ Nothing to listen to; set the *_ADDRESS variables")

    if job_queue is not None:
        await job_queue.close()
    await pool.close()


async def _run_manager(manager: ListenerManager, settings: Settings):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: _shutdown(manager, s))

    await manager.start_all()
    log.info(f"Listening with {len(manager.workers)} listener(s), mode={settings.listener_mode}")
    await manager.wait()

    for status in manager.statuses():
        log.info(f"{status['name']}: {status['state']} at block {status['last_processed_block']}")


def _shutdown(manager: ListenerManager, signum):
    log.info(f"Received signal {signum}, shutting down...")
    for worker in manager.workers:
        worker.stop()


def main():
    parser = argparse.ArgumentParser(description='DeSci chain listener')
    parser.add_argument('--mode', choices=['multiplexed', 'per_contract'],
                        help='Listener mode (default: LISTENER_MODE or multiplexed)')
    parser.add_argument('--start-block', type=int,
                        help='First block when no checkpoint exists')
    parser.add_argument('--confirmations', type=int,
                        help='Blocks below head treated as final')
    parser.add_argument('--env-file', default=str(Path.cwd() / '.env'),
                        help='dotenv file to load (default: ./.env)')
    args = parser.parse_args()

    load_dotenv(args.env_file)

    overrides = {}
    if args.mode:
        overrides['listener_mode'] = args.mode
    if args.start_block is not None:
        overrides['start_block'] = args.start_block
    if args.confirmations is not None:
        overrides['confirmations'] = args.confirmations
    settings = Settings(**overrides)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s'
    )

    asyncio.run(run(settings))


if __name__ == '__main__':
    main()
