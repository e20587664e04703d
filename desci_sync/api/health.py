"""
Health endpoint

status is "degraded" when the store does not answer or any listener has
gone to FAILED; the API keeps serving reads either way.
"""

from fastapi import APIRouter, Depends
from typing import Optional
import logging

import asyncpg

from .dependencies import get_listener_manager, get_store
from ..models.api import HealthResponse, ListenerStatus
from ..workers.manager import ListenerManager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    store=Depends(get_store),
    listeners: Optional[ListenerManager] = Depends(get_listener_manager),
):
    db_ok = await store.ping()

    last_event_block = None
    if db_ok:
        try:
            last_event_block = await store.max_event_block()
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"Could not read last event block: {e}")
            db_ok = False

    if last_event_block is None and listeners is not None:
        last_event_block = listeners.last_processed_block

    statuses = listeners.statuses() if listeners is not None else []
    failed = listeners.any_failed if listeners is not None else False

    return HealthResponse(
        status="ok" if db_ok and not failed else "degraded",
        db="ok" if db_ok else "error",
        last_event_block=last_event_block or 0,
        listeners=[ListenerStatus(**s) for s in statuses],
    )
