"""
API models - request/response schemas for the read API
"""
from .research import (
    ResearchResponse,
    ResearchListResponse,
    AuthorResearchResponse,
    VerifyRequest,
    VerifyResponse,
    CitationResponse,
    ReviewResponse,
    DatasetResponse,
    DatasetListResponse,
    UserResponse,
)
from .health import HealthResponse, ListenerStatus

__all__ = [
    'ResearchResponse',
    'ResearchListResponse',
    'AuthorResearchResponse',
    'VerifyRequest',
    'VerifyResponse',
    'CitationResponse',
    'ReviewResponse',
    'DatasetResponse',
    'DatasetListResponse',
    'UserResponse',
    'HealthResponse',
    'ListenerStatus',
]
