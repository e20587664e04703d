"""
Dataset domain models
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class DatasetRecord:
    """
    Dataset projection

    Storage: PostgreSQL (datasets table)

    Created by DatasetUploaded; purchase and citation events only ever
    increase download_count, citation_count and revenue.
    """
    dataset_id: str
    uploader: str
    title: str
    tx_hash: str
    block_number: int

    ipfs_hash: str = ""
    access_price: int = 0  # wei

    # Monotonic counters
    download_count: int = 0
    citation_count: int = 0
    revenue: int = 0  # wei

    created_at: Optional[datetime] = None

    def same_content(self, other: 'DatasetRecord') -> bool:
        return (
            self.dataset_id == other.dataset_id
            and self.uploader == other.uploader
            and self.title == other.title
            and self.ipfs_hash == other.ipfs_hash
            and self.access_price == other.access_price
        )


@dataclass
class DatasetCitation:
    """Citation of a dataset by some research work"""
    tx_hash: str
    log_index: int
    dataset_id: str
    citer: str
    block_number: int
    citing_work_hash: str = ""
