"""
Query service - read side over the projection store

Used by the API routers. Only ever reads committed rows through the
pool-bound repositories; never touches the chain.
"""
import logging
from typing import List

from .errors import NotFound
from ..models.domain import (
    DatasetRecord,
    PeerReview,
    ResearchCitation,
    ResearchRecord,
    UserProfile,
)
from ..utils.hex_utils import normalize_address

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def clamp_limit(limit: int) -> int:
    """Bound a page size to 1..MAX_LIMIT"""
    return max(1, min(int(limit), MAX_LIMIT))


class ResearchQueryService:
    """
    Args:
        store: PostgresStore (or a fake exposing .research/.datasets/.users)
    """

    def __init__(self, store):
        self.store = store

    # =========================================================================
    # RESEARCH
    # =========================================================================

    async def get_research(self, token_id: str) -> ResearchRecord:
        record = await self.store.research.get_by_token_id(token_id)
        if record is None:
            raise NotFound("research", token_id)
        return record

    async def latest(self, limit: int = DEFAULT_LIMIT, offset: int = 0) -> List[ResearchRecord]:
        return await self.store.research.list_latest(limit=clamp_limit(limit), offset=max(0, offset))

    async def by_author(self, address: str, limit: int = DEFAULT_LIMIT, offset: int = 0) -> List[ResearchRecord]:
        """
        Raises:
            ValueError: address is not a valid hex address
        """
        author = normalize_address(address)
        return await self.store.research.list_by_author(
            author, limit=clamp_limit(limit), offset=max(0, offset)
        )

    async def citations(self, token_id: str) -> List[ResearchCitation]:
        await self.get_research(token_id)
        return await self.store.research.list_citations(token_id)

    async def reviews(self, token_id: str) -> List[PeerReview]:
        await self.get_research(token_id)
        return await self.store.research.list_reviews(token_id)

    # =========================================================================
    # DATASETS / USERS
    # =========================================================================

    async def get_dataset(self, dataset_id: str) -> DatasetRecord:
        record = await self.store.datasets.get_by_id(dataset_id)
        if record is None:
            raise NotFound("dataset", dataset_id)
        return record

    async def datasets_by_uploader(self, address: str, limit: int = DEFAULT_LIMIT) -> List[DatasetRecord]:
        uploader = normalize_address(address)
        return await self.store.datasets.list_by_uploader(uploader, limit=clamp_limit(limit))

    async def get_user(self, address: str) -> UserProfile:
        user = await self.store.users.get_by_address(normalize_address(address))
        if user is None:
            raise NotFound("user", address)
        return user
