"""
Dataset Repository - PostgreSQL storage for dataset projections

Storage: PostgreSQL (datasets, dataset_citations)

NUMERIC(78) columns hold uint256 wei amounts; values cross the asyncpg
boundary as Decimal and come back out as int.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Union

import asyncpg

from ..models.domain import DatasetRecord, DatasetCitation

logger = logging.getLogger(__name__)

Executor = Union[asyncpg.Pool, asyncpg.Connection]

_DATASET_COLUMNS = """
    dataset_id, uploader, title, ipfs_hash, access_price, download_count,
    citation_count, revenue, created_at, tx_hash, block_number
"""


def _to_record(row) -> DatasetRecord:
    return DatasetRecord(
        dataset_id=row['dataset_id'],
        uploader=row['uploader'],
        title=row['title'],
        ipfs_hash=row['ipfs_hash'],
        access_price=int(row['access_price']),
        download_count=row['download_count'],
        citation_count=row['citation_count'],
        revenue=int(row['revenue']),
        created_at=row['created_at'],
        tx_hash=row['tx_hash'],
        block_number=row['block_number'],
    )


class DatasetRepository:
    """
    Repository for DatasetRecord
    """

    def __init__(self, db: Executor):
        self.db = db

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_id(self, dataset_id: str) -> Optional[DatasetRecord]:
        row = await self.db.fetchrow(f"""
            SELECT {_DATASET_COLUMNS}
            FROM datasets
            WHERE dataset_id = $1
        """, dataset_id)
        return _to_record(row) if row else None

    async def list_by_uploader(self, uploader: str, limit: int = 20) -> List[DatasetRecord]:
        rows = await self.db.fetch(f"""
            SELECT {_DATASET_COLUMNS}
            FROM datasets
            WHERE uploader = $1
            ORDER BY block_number DESC
            LIMIT $2
        """, uploader, limit)
        return [_to_record(r) for r in rows]

    async def list_citations(self, dataset_id: str, limit: int = 100) -> List[DatasetCitation]:
        rows = await self.db.fetch("""
            SELECT tx_hash, log_index, dataset_id, citer, citing_work_hash, block_number
            FROM dataset_citations
            WHERE dataset_id = $1
            ORDER BY block_number, log_index
            LIMIT $2
        """, dataset_id, limit)
        return [DatasetCitation(**dict(r)) for r in rows]

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def insert(self, record: DatasetRecord) -> bool:
        """
        Insert a newly uploaded dataset.

        Returns:
            True if inserted, False if dataset_id already exists
        """
        inserted = await self.db.fetchval("""
            INSERT INTO datasets (
                dataset_id, uploader, title, ipfs_hash, access_price,
                download_count, citation_count, revenue, created_at, tx_hash, block_number
            )
            VALUES ($1, $2, $3, $4, $5, 0, 0, 0, $6, $7, $8)
            ON CONFLICT (dataset_id) DO NOTHING
            RETURNING dataset_id
        """,
            record.dataset_id,
            record.uploader,
            record.title,
            record.ipfs_hash,
            Decimal(record.access_price),
            record.created_at,
            record.tx_hash,
            record.block_number,
        )
        return inserted is not None

    async def record_purchase(self, dataset_id: str, amount: int) -> bool:
        """
        Count one access purchase.

        Returns:
            False if the dataset is not projected
        """
        result = await self.db.execute("""
            UPDATE datasets
            SET download_count = download_count + 1,
                revenue = revenue + $2
            WHERE dataset_id = $1
        """, dataset_id, Decimal(amount))
        return int(result.split()[-1]) > 0

    async def add_citation(self, citation: DatasetCitation) -> bool:
        """Insert citation row and bump the dataset's counter"""
        inserted = await self.db.fetchval("""
            INSERT INTO dataset_citations (
                tx_hash, log_index, dataset_id, citer, citing_work_hash, block_number
            )
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (tx_hash, log_index) DO NOTHING
            RETURNING tx_hash
        """,
            citation.tx_hash,
            citation.log_index,
            citation.dataset_id,
            citation.citer,
            citation.citing_work_hash,
            citation.block_number,
        )
        if inserted is None:
            return False

        await self.db.execute("""
            UPDATE datasets
            SET citation_count = citation_count + 1
            WHERE dataset_id = $1
        """, citation.dataset_id)
        return True
