"""
Tests for environment-driven settings.
"""
import pytest
from pydantic import ValidationError

from desci_sync.config import PostgresConfig, RedisConfig, Settings
from desci_sync.config.database import get_migration_files

ENV_VARS = [
    "DATABASE_URL", "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_USER", "POSTGRES_PASSWORD",
    "POSTGRES_DB", "RPC_URL", "ETHEREUM_RPC", "DESCI_REGISTRY_ADDRESS",
    "DATASET_MANAGER_ADDRESS", "RESEARCH_NFT_ADDRESS", "DESCI_PLATFORM_ADDRESS",
    "CONFIRMATIONS", "BATCH_SIZE", "LISTENER_MODE", "NOTIFY_QUEUE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def make_settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


class TestSettings:

    def test_defaults(self):
        settings = make_settings()
        assert settings.confirmations == 2
        assert settings.batch_size == 500
        assert settings.listener_mode == "multiplexed"
        assert settings.contract_addresses == {}

    def test_database_url_built_from_parts(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_HOST", "db")
        monkeypatch.setenv("POSTGRES_USER", "u")
        monkeypatch.setenv("POSTGRES_PASSWORD", "p")
        monkeypatch.setenv("POSTGRES_DB", "desci")

        settings = make_settings()

        assert settings.database_url == "postgresql://u:p@db:5432/desci"

    def test_explicit_database_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://x:y@elsewhere:6543/z")
        assert make_settings().database_url == "postgresql://x:y@elsewhere:6543/z"

    def test_ethereum_rpc_alias(self, monkeypatch):
        monkeypatch.setenv("RPC_URL", "http://a:8545")
        assert make_settings().chain_rpc_url == "http://a:8545"

        monkeypatch.setenv("ETHEREUM_RPC", "http://b:8545")
        assert make_settings().chain_rpc_url == "http://b:8545"

    def test_contract_addresses_skip_unset(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_NFT_ADDRESS", "0x1111111111111111111111111111111111111111")
        monkeypatch.setenv("DATASET_MANAGER_ADDRESS", "0x2222222222222222222222222222222222222222")

        contracts = make_settings().contract_addresses

        assert contracts == {
            'DatasetManager': "0x2222222222222222222222222222222222222222",
            'ResearchNFT': "0x1111111111111111111111111111111111111111",
        }

    def test_rejects_negative_confirmations(self):
        with pytest.raises(ValidationError):
            make_settings(confirmations=-1)

    def test_rejects_zero_batch_size(self):
        with pytest.raises(ValidationError):
            make_settings(batch_size=0)

    def test_rejects_unknown_mode(self):
        with pytest.raises(ValidationError):
            make_settings(listener_mode="sharded")


class TestConnectionConfig:

    def test_postgres_config(self):
        settings = make_settings(postgres_pool_min=1, postgres_pool_max=4)
        kwargs = PostgresConfig.from_settings(settings).to_asyncpg_kwargs()
        assert kwargs['dsn'] == settings.database_url
        assert kwargs['min_size'] == 1
        assert kwargs['max_size'] == 4

    def test_redis_disabled_without_queue(self):
        assert not RedisConfig.from_settings(make_settings()).enabled
        assert RedisConfig.from_settings(make_settings(notify_queue="queue:sync:batches")).enabled

    def test_migrations_shipped(self):
        names = [p.name for p in get_migration_files()]
        assert names
        assert names == sorted(names)
