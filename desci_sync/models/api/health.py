"""
Pydantic models for /health
"""

from pydantic import BaseModel
from typing import List, Literal, Optional


class ListenerStatus(BaseModel):
    name: str
    state: str
    last_processed_block: Optional[int] = None
    next_block: Optional[int] = None
    batches_processed: int = 0
    events_projected: int = 0
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    last_batch_at: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    service: str = "desci-sync"
    db: Literal["ok", "error"]
    last_event_block: int
    listeners: List[ListenerStatus] = []
