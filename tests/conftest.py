"""
Pytest configuration for desci_sync tests.
"""
import pytest

from desci_sync.services.event_decoder import EventDecoder
from desci_sync.services.log_reader import EventLogReader
from desci_sync.services.retry import RetryPolicy

from .fakes import WATCHED, FakeChain, FakeStore, LogFactory


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring PostgreSQL"
    )


@pytest.fixture
def fast_retry():
    """Retry policy without real sleeps"""
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def logs():
    return LogFactory()


@pytest.fixture
def chain():
    return FakeChain(head=0)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def decoder():
    return EventDecoder()


@pytest.fixture
def reader(chain, decoder, fast_retry):
    return EventLogReader(
        chain,
        WATCHED,
        decoder=decoder,
        confirmations=2,
        batch_size=100,
        retry_policy=fast_retry,
        name="test",
    )

