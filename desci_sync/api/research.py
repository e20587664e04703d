"""
Research API Endpoints
======================

Read-only views over projected research NFTs plus content verification.

Endpoints:
- GET  /api/research/latest - Newest research first
- GET  /api/research/by-author/{address} - Research co-authored by an address
- GET  /api/research/{token_id} - Single research record
- POST /api/research/{token_id}/verify - Check raw content against the on-chain hash
- GET  /api/research/{token_id}/citations - Citations of a research token
- GET  /api/research/{token_id}/reviews - Peer reviews of a research token
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
import logging

from .dependencies import get_query_service, get_verifier
from ..models.api import (
    AuthorResearchResponse,
    CitationResponse,
    ResearchListResponse,
    ResearchResponse,
    ReviewResponse,
    VerifyRequest,
    VerifyResponse,
)
from ..services.errors import NotFound
from ..services.query_service import DEFAULT_LIMIT, MAX_LIMIT, ResearchQueryService
from ..services.verifier import ContentVerifier

logger = logging.getLogger(__name__)
router = APIRouter()


# Static paths are registered before /research/{token_id}

@router.get("/research/latest", response_model=ResearchListResponse)
async def get_latest_research(
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(0, ge=0),
    queries: ResearchQueryService = Depends(get_query_service),
):
    """
    Latest research, ordered by mint time (newest first).

    Returns:
        count: Items in this page
        limit, offset: Echo of the paging parameters
        list: Research records
    """
    records = await queries.latest(limit=limit, offset=offset)
    return ResearchListResponse(
        count=len(records),
        limit=limit,
        offset=offset,
        list=[ResearchResponse.from_record(r) for r in records],
    )


@router.get("/research/by-author/{address}", response_model=AuthorResearchResponse)
async def get_research_by_author(
    address: str,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(0, ge=0),
    queries: ResearchQueryService = Depends(get_query_service),
):
    """Research where address is one of the authors, most recent first"""
    try:
        records = await queries.by_author(address, limit=limit, offset=offset)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid address")

    return AuthorResearchResponse(
        count=len(records),
        author=address,
        limit=limit,
        offset=offset,
        list=[ResearchResponse.from_record(r) for r in records],
    )


@router.get("/research/{token_id}", response_model=ResearchResponse)
async def get_research(
    token_id: str,
    queries: ResearchQueryService = Depends(get_query_service),
):
    try:
        record = await queries.get_research(token_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Research not found")
    return ResearchResponse.from_record(record)


@router.post("/research/{token_id}/verify", response_model=VerifyResponse)
async def verify_research(
    token_id: str,
    body: VerifyRequest,
    verifier: ContentVerifier = Depends(get_verifier),
):
    """
    Recompute the content hash of rawContent and compare it with the hash
    recorded at mint time.

    Returns:
        match: True when the supplied content is byte-identical to the minted one
    """
    try:
        result = await verifier.verify(token_id, body.raw_content)
    except NotFound:
        raise HTTPException(status_code=404, detail="Research not found")
    except UnicodeEncodeError:
        # e.g. a lone surrogate escape in the JSON body
        raise HTTPException(status_code=422, detail="rawContent is not valid UTF-8 text")
    return VerifyResponse(match=result.match)


@router.get("/research/{token_id}/citations", response_model=List[CitationResponse])
async def get_research_citations(
    token_id: str,
    queries: ResearchQueryService = Depends(get_query_service),
):
    try:
        citations = await queries.citations(token_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Research not found")
    return [CitationResponse.from_record(c) for c in citations]


@router.get("/research/{token_id}/reviews", response_model=List[ReviewResponse])
async def get_research_reviews(
    token_id: str,
    queries: ResearchQueryService = Depends(get_query_service),
):
    """Peer reviews; anonymous reviewers are returned as null"""
    try:
        reviews = await queries.reviews(token_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Research not found")
    return [ReviewResponse.from_record(r) for r in reviews]
