"""
Research Repository - PostgreSQL storage for research NFT projections

Storage: PostgreSQL (research_records, research_citations, research_reviews)

Accepts either the pool (reads from the API) or a connection inside a
batch transaction (writes from the projector); both expose the same
fetch/fetchrow/fetchval/execute methods.
"""
import logging
from typing import List, Optional, Union

import asyncpg

from ..models.domain import ResearchRecord, ResearchCitation, PeerReview

logger = logging.getLogger(__name__)

Executor = Union[asyncpg.Pool, asyncpg.Connection]

_RESEARCH_COLUMNS = """
    token_id, title, authors, content_hash, ipfs_metadata_hash,
    citation_count, review_count, created_at, tx_hash, block_number, log_index
"""


def _to_record(row) -> ResearchRecord:
    return ResearchRecord(
        token_id=row['token_id'],
        title=row['title'],
        authors=list(row['authors'] or []),
        content_hash=row['content_hash'],
        ipfs_metadata_hash=row['ipfs_metadata_hash'],
        citation_count=row['citation_count'],
        review_count=row['review_count'],
        created_at=row['created_at'],
        tx_hash=row['tx_hash'],
        block_number=row['block_number'],
        log_index=row['log_index'],
    )


class ResearchRepository:
    """
    Repository for ResearchRecord and its child collections
    """

    def __init__(self, db: Executor):
        self.db = db

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_token_id(self, token_id: str) -> Optional[ResearchRecord]:
        """
        Retrieve research record by token id.

        Args:
            token_id: Token id as decimal string

        Returns:
            ResearchRecord or None
        """
        row = await self.db.fetchrow(f"""
            SELECT {_RESEARCH_COLUMNS}
            FROM research_records
            WHERE token_id = $1
        """, token_id)

        if not row:
            return None
        return _to_record(row)

    async def list_latest(self, limit: int = 20, offset: int = 0) -> List[ResearchRecord]:
        """Newest mints first (block timestamp, then chain position)"""
        rows = await self.db.fetch(f"""
            SELECT {_RESEARCH_COLUMNS}
            FROM research_records
            ORDER BY created_at DESC NULLS LAST, block_number DESC, log_index DESC
            LIMIT $1 OFFSET $2
        """, limit, offset)
        return [_to_record(r) for r in rows]

    async def list_by_author(self, author: str, limit: int = 20, offset: int = 0) -> List[ResearchRecord]:
        """
        Research co-authored by an address, most recent first.

        Args:
            author: Checksummed address
        """
        rows = await self.db.fetch(f"""
            SELECT {_RESEARCH_COLUMNS}
            FROM research_records
            WHERE authors @> ARRAY[$1]::text[]
            ORDER BY created_at DESC NULLS LAST, block_number DESC, log_index DESC
            LIMIT $2 OFFSET $3
        """, author, limit, offset)
        return [_to_record(r) for r in rows]

    async def list_citations(self, token_id: str, limit: int = 100) -> List[ResearchCitation]:
        rows = await self.db.fetch("""
            SELECT tx_hash, log_index, citing_token_id, cited_token_id, citer, block_number
            FROM research_citations
            WHERE cited_token_id = $1
            ORDER BY block_number, log_index
            LIMIT $2
        """, token_id, limit)
        return [ResearchCitation(**dict(r)) for r in rows]

    async def list_reviews(self, token_id: str, limit: int = 100) -> List[PeerReview]:
        rows = await self.db.fetch("""
            SELECT tx_hash, log_index, token_id, reviewer, score, review_hash,
                   is_anonymous, block_number
            FROM research_reviews
            WHERE token_id = $1
            ORDER BY block_number, log_index
            LIMIT $2
        """, token_id, limit)
        return [PeerReview(**dict(r)) for r in rows]

    async def count(self) -> int:
        return await self.db.fetchval("SELECT COUNT(*) FROM research_records")

    # =========================================================================
    # WRITE OPERATIONS (projector, inside a batch transaction)
    # =========================================================================

    async def insert(self, record: ResearchRecord) -> bool:
        """
        Insert a freshly minted record.

        Returns:
            True if inserted, False if token_id already exists
        """
        inserted = await self.db.fetchval("""
            INSERT INTO research_records (
                token_id, title, authors, content_hash, ipfs_metadata_hash,
                citation_count, review_count, created_at, tx_hash, block_number, log_index
            )
            VALUES ($1, $2, $3, $4, $5, 0, 0, $6, $7, $8, $9)
            ON CONFLICT (token_id) DO NOTHING
            RETURNING token_id
        """,
            record.token_id,
            record.title,
            list(record.authors),
            record.content_hash,
            record.ipfs_metadata_hash,
            record.created_at,
            record.tx_hash,
            record.block_number,
            record.log_index,
        )
        return inserted is not None

    async def add_citation(self, citation: ResearchCitation) -> bool:
        """Insert citation row and bump the cited record's counter"""
        inserted = await self.db.fetchval("""
            INSERT INTO research_citations (
                tx_hash, log_index, citing_token_id, cited_token_id, citer, block_number
            )
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (tx_hash, log_index) DO NOTHING
            RETURNING tx_hash
        """,
            citation.tx_hash,
            citation.log_index,
            citation.citing_token_id,
            citation.cited_token_id,
            citation.citer,
            citation.block_number,
        )
        if inserted is None:
            return False

        await self.db.execute("""
            UPDATE research_records
            SET citation_count = citation_count + 1
            WHERE token_id = $1
        """, citation.cited_token_id)
        return True

    async def add_review(self, review: PeerReview) -> bool:
        """Insert review row and bump the reviewed record's counter"""
        inserted = await self.db.fetchval("""
            INSERT INTO research_reviews (
                tx_hash, log_index, token_id, reviewer, score, review_hash,
                is_anonymous, block_number
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (tx_hash, log_index) DO NOTHING
            RETURNING tx_hash
        """,
            review.tx_hash,
            review.log_index,
            review.token_id,
            review.reviewer,
            review.score,
            review.review_hash,
            review.is_anonymous,
            review.block_number,
        )
        if inserted is None:
            return False

        await self.db.execute("""
            UPDATE research_records
            SET review_count = review_count + 1
            WHERE token_id = $1
        """, review.token_id)
        return True
