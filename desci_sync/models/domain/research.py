"""
Research domain models
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class ResearchRecord:
    """
    Research NFT projection - storage-agnostic representation

    Storage: PostgreSQL (research_records table)

    Created by ResearchMinted. Only the counters change afterwards,
    and only upwards.
    """
    token_id: str
    title: str
    content_hash: str  # 0x-prefixed lowercase keccak-256 hex
    tx_hash: str
    block_number: int
    log_index: int = 0
    created_at: Optional[datetime] = None  # block timestamp of the mint

    authors: List[str] = field(default_factory=list)
    ipfs_metadata_hash: str = ""

    # Append-only counters
    citation_count: int = 0
    review_count: int = 0

    def same_content(self, other: 'ResearchRecord') -> bool:
        """True when other describes the same mint (counters ignored)"""
        return (
            self.token_id == other.token_id
            and self.content_hash == other.content_hash
            and self.title == other.title
            and list(self.authors) == list(other.authors)
            and self.ipfs_metadata_hash == other.ipfs_metadata_hash
        )


@dataclass
class ResearchCitation:
    """Citation of one research token by another"""
    tx_hash: str
    log_index: int
    citing_token_id: str
    cited_token_id: str
    citer: str
    block_number: int


@dataclass
class PeerReview:
    """Peer review attached to a research token"""
    tx_hash: str
    log_index: int
    token_id: str
    reviewer: str
    score: int
    block_number: int
    review_hash: str = ""
    is_anonymous: bool = False

    @property
    def public_reviewer(self) -> Optional[str]:
        """Reviewer address unless the review was submitted anonymously"""
        return None if self.is_anonymous else self.reviewer
