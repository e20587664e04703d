"""
Pydantic models for the research / dataset / user read API
"""

from pydantic import BaseModel, Field, field_serializer
from datetime import datetime
from typing import List, Optional

from ..domain import (
    DatasetRecord,
    PeerReview,
    ResearchCitation,
    ResearchRecord,
    UserProfile,
)


class ResearchResponse(BaseModel):
    """Projected research NFT"""
    token_id: str
    title: str
    authors: List[str]
    content_hash: str
    ipfs_metadata_hash: str = ""
    citation_count: int = 0
    review_count: int = 0
    created_at: Optional[datetime] = None
    tx_hash: str
    block_number: int

    model_config = {
        "from_attributes": True
    }

    @classmethod
    def from_record(cls, record: ResearchRecord) -> 'ResearchResponse':
        return cls.model_validate(record)


class ResearchListResponse(BaseModel):
    count: int
    limit: int
    offset: int
    list: List[ResearchResponse]


class AuthorResearchResponse(BaseModel):
    count: int
    author: str
    limit: int
    offset: int
    list: List[ResearchResponse]


class VerifyRequest(BaseModel):
    """Body of POST /api/research/{token_id}/verify"""
    raw_content: str = Field(alias="rawContent")

    model_config = {
        "populate_by_name": True
    }


class VerifyResponse(BaseModel):
    match: bool


class CitationResponse(BaseModel):
    tx_hash: str
    log_index: int
    citing_token_id: str
    cited_token_id: str
    citer: str
    block_number: int

    model_config = {
        "from_attributes": True
    }

    @classmethod
    def from_record(cls, citation: ResearchCitation) -> 'CitationResponse':
        return cls.model_validate(citation)


class ReviewResponse(BaseModel):
    """Peer review; reviewer is null for anonymous reviews"""
    tx_hash: str
    log_index: int
    token_id: str
    reviewer: Optional[str] = None
    score: int
    review_hash: str = ""
    is_anonymous: bool = False
    block_number: int

    @classmethod
    def from_record(cls, review: PeerReview) -> 'ReviewResponse':
        return cls(
            tx_hash=review.tx_hash,
            log_index=review.log_index,
            token_id=review.token_id,
            reviewer=review.public_reviewer,
            score=review.score,
            review_hash=review.review_hash,
            is_anonymous=review.is_anonymous,
            block_number=review.block_number,
        )


class DatasetResponse(BaseModel):
    """Projected dataset; wei amounts are serialized as decimal strings"""
    dataset_id: str
    uploader: str
    title: str
    ipfs_hash: str = ""
    access_price: int = 0
    download_count: int = 0
    citation_count: int = 0
    revenue: int = 0
    created_at: Optional[datetime] = None
    tx_hash: str
    block_number: int

    model_config = {
        "from_attributes": True
    }

    @field_serializer('access_price', 'revenue')
    def serialize_wei(self, value: int) -> str:
        return str(value)

    @classmethod
    def from_record(cls, record: DatasetRecord) -> 'DatasetResponse':
        return cls.model_validate(record)


class DatasetListResponse(BaseModel):
    count: int
    uploader: str
    list: List[DatasetResponse]


class UserResponse(BaseModel):
    """Registered user profile"""
    address: str
    name: str
    organization: str = ""
    research_fields: str = ""
    credentials_hash: str = ""
    role: int
    role_name: str
    reputation: int = 0
    registered_at: Optional[datetime] = None
    block_number: int

    @field_serializer('reputation')
    def serialize_reputation(self, value: int) -> str:
        return str(value)

    @classmethod
    def from_record(cls, user: UserProfile) -> 'UserResponse':
        return cls(
            address=user.address,
            name=user.name,
            organization=user.organization,
            research_fields=user.research_fields,
            credentials_hash=user.credentials_hash,
            role=int(user.role),
            role_name=user.role_name,
            reputation=user.reputation,
            registered_at=user.registered_at,
            block_number=user.block_number,
        )
