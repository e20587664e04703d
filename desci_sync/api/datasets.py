"""
Dataset and User API Endpoints
==============================

Endpoints:
- GET /api/dataset/{dataset_id} - Single dataset
- GET /api/datasets/by-uploader/{address} - Datasets uploaded by an address
- GET /api/users/{address} - Registered user profile
"""

from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from .dependencies import get_query_service
from ..models.api import DatasetListResponse, DatasetResponse, UserResponse
from ..services.errors import NotFound
from ..services.query_service import DEFAULT_LIMIT, MAX_LIMIT, ResearchQueryService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/dataset/{dataset_id}", response_model=DatasetResponse)
async def get_dataset(
    dataset_id: str,
    queries: ResearchQueryService = Depends(get_query_service),
):
    try:
        record = await queries.get_dataset(dataset_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Dataset not found")
    return DatasetResponse.from_record(record)


@router.get("/datasets/by-uploader/{address}", response_model=DatasetListResponse)
async def get_datasets_by_uploader(
    address: str,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    queries: ResearchQueryService = Depends(get_query_service),
):
    try:
        records = await queries.datasets_by_uploader(address, limit=limit)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid address")

    return DatasetListResponse(
        count=len(records),
        uploader=address,
        list=[DatasetResponse.from_record(r) for r in records],
    )


@router.get("/users/{address}", response_model=UserResponse)
async def get_user(
    address: str,
    queries: ResearchQueryService = Depends(get_query_service),
):
    """
    Registered user profile.

    Returns:
        Profile with role name and reputation (decimal string)
    """
    try:
        user = await queries.get_user(address)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid address")
    except NotFound:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse.from_record(user)
