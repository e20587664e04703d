"""
FastAPI dependencies

Everything hangs off app.state, populated by the lifespan in main.py.
Tests swap these out with app.dependency_overrides.
"""
from typing import Optional

from fastapi import HTTPException, Request

from ..services.query_service import ResearchQueryService
from ..services.verifier import ContentVerifier
from ..workers.manager import ListenerManager


def get_store(request: Request):
    store = getattr(request.app.state, 'store', None)
    if store is None:
        raise HTTPException(status_code=503, detail="Store not available")
    return store


def get_query_service(request: Request) -> ResearchQueryService:
    return ResearchQueryService(get_store(request))


def get_verifier(request: Request) -> ContentVerifier:
    return ContentVerifier(get_store(request).research)


def get_listener_manager(request: Request) -> Optional[ListenerManager]:
    return getattr(request.app.state, 'listeners', None)
