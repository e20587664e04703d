from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import Dict, Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can come from:
    - docker-compose.yml environment section
    - .env file
    - System environment

    Variable names follow the platform's deployment conventions:
    - POSTGRES_HOST, POSTGRES_PORT, etc. (for the projection store)
    - RPC_URL / ETHEREUM_RPC (chain endpoint)
    - *_ADDRESS (deployed contract addresses)
    """

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # PostgreSQL (from docker-compose)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "desci_user"
    postgres_password: str = "desci_pass"
    postgres_db: str = "desci"
    postgres_pool_min: int = 2
    postgres_pool_max: int = 10
    database_url: Optional[str] = Field(default=None, validate_default=True)
    run_migrations: bool = True

    # Chain endpoint
    rpc_url: str = "http://127.0.0.1:8545"
    ethereum_rpc: Optional[str] = None
    rpc_timeout_seconds: float = 10.0

    # Deployed contracts
    desci_registry_address: str = ""
    dataset_manager_address: str = ""
    research_nft_address: str = ""
    desci_platform_address: str = ""

    # Listener
    enable_listener: bool = True
    listener_name: str = "desci-main"
    listener_mode: Literal["multiplexed", "per_contract"] = "multiplexed"
    start_block: int = 0
    confirmations: int = 2
    batch_size: int = 500
    poll_interval_seconds: float = 5.0
    filter_known_topics: bool = False  # eth_getLogs topic0 filter over registered events

    # Retry policy (per RPC call) and listener failure budget (per cycle)
    retry_max_attempts: int = 5
    retry_base_delay_seconds: float = 0.5
    retry_max_delay_seconds: float = 30.0
    max_consecutive_failures: int = 10

    # Redis batch notifications (disabled when notify_queue is empty)
    redis_url: str = "redis://localhost:6379"
    notify_queue: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars

    @field_validator('database_url', mode='before')
    @classmethod
    def construct_database_url(cls, v, info):
        """Construct database URL from components if not explicitly set"""
        if v:
            return v

        data = info.data
        host = data.get('postgres_host', 'localhost')
        port = data.get('postgres_port', 5432)
        user = data.get('postgres_user', 'desci_user')
        password = data.get('postgres_password', 'desci_pass')
        db = data.get('postgres_db', 'desci')

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @field_validator('confirmations', 'start_block')
    @classmethod
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator('batch_size', 'retry_max_attempts', 'max_consecutive_failures')
    @classmethod
    def positive(cls, v):
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @property
    def chain_rpc_url(self) -> str:
        """ETHEREUM_RPC (legacy name) wins over RPC_URL when both are set"""
        return self.ethereum_rpc or self.rpc_url

    @property
    def contract_addresses(self) -> Dict[str, str]:
        """Configured contracts by name, skipping unset addresses"""
        contracts = {
            'DeSciRegistry': self.desci_registry_address,
            'DatasetManager': self.dataset_manager_address,
            'ResearchNFT': self.research_nft_address,
            'DeSciPlatform': self.desci_platform_address,
        }
        return {name: addr for name, addr in contracts.items() if addr}


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
