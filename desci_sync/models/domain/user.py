"""
User domain model
"""
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Optional


class UserRole(IntEnum):
    """Role codes as emitted by the registry contract"""
    RESEARCHER = 0
    INSTITUTION = 1
    REVIEWER = 2
    DATA_PROVIDER = 3
    ADMIN = 4


@dataclass
class UserProfile:
    """
    Registered platform user

    Storage: PostgreSQL (users table), keyed by checksummed address.
    Re-registration refreshes the profile fields; reputation is driven
    by ReputationUpdated.
    """
    address: str
    tx_hash: str
    block_number: int

    name: str = ""
    organization: str = ""
    email: str = ""
    research_fields: str = ""
    credentials_hash: str = ""
    role: int = UserRole.RESEARCHER

    reputation: int = 0
    registered_at: Optional[datetime] = None

    @property
    def role_name(self) -> str:
        try:
            return UserRole(self.role).name.lower()
        except ValueError:
            return "unknown"
