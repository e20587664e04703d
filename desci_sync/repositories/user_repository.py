"""
User Repository - PostgreSQL storage for registered users

Storage: PostgreSQL (users table)
"""
import logging
from decimal import Decimal
from typing import Optional, Union

import asyncpg

from ..models.domain import UserProfile

logger = logging.getLogger(__name__)

Executor = Union[asyncpg.Pool, asyncpg.Connection]


class UserRepository:
    """
    Repository for UserProfile

    Keyed by checksummed address.
    """

    def __init__(self, db: Executor):
        self.db = db

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_address(self, address: str) -> Optional[UserProfile]:
        """
        Retrieve user by address.

        Args:
            address: Checksummed address

        Returns:
            UserProfile or None
        """
        row = await self.db.fetchrow("""
            SELECT address, name, organization, email, research_fields,
                   credentials_hash, role, reputation, registered_at,
                   tx_hash, block_number
            FROM users
            WHERE address = $1
        """, address)

        if not row:
            return None

        return UserProfile(
            address=row['address'],
            name=row['name'],
            organization=row['organization'],
            email=row['email'],
            research_fields=row['research_fields'],
            credentials_hash=row['credentials_hash'],
            role=row['role'],
            reputation=int(row['reputation']),
            registered_at=row['registered_at'],
            tx_hash=row['tx_hash'],
            block_number=row['block_number'],
        )

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def upsert(self, user: UserProfile) -> None:
        """
        Insert or refresh a registration.

        Reputation and the original registration time survive re-registration.
        """
        await self.db.execute("""
            INSERT INTO users (
                address, name, organization, email, research_fields,
                credentials_hash, role, reputation, registered_at, tx_hash, block_number
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, 0, $8, $9, $10)
            ON CONFLICT (address) DO UPDATE SET
                name = EXCLUDED.name,
                organization = EXCLUDED.organization,
                email = EXCLUDED.email,
                research_fields = EXCLUDED.research_fields,
                credentials_hash = EXCLUDED.credentials_hash,
                role = EXCLUDED.role,
                tx_hash = EXCLUDED.tx_hash,
                block_number = EXCLUDED.block_number
        """,
            user.address,
            user.name,
            user.organization,
            user.email,
            user.research_fields,
            user.credentials_hash,
            user.role,
            user.registered_at,
            user.tx_hash,
            user.block_number,
        )

    async def set_reputation(self, address: str, reputation: int) -> bool:
        """
        Returns:
            False if the user is not projected
        """
        result = await self.db.execute("""
            UPDATE users SET reputation = $2 WHERE address = $1
        """, address, Decimal(reputation))
        return int(result.split()[-1]) > 0
