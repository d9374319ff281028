import pytest

from autoreply.database.base import InMemoryKeyValueStore
from autoreply.services.rule_store import RuleStore
from fakes import FakeClock, FakeMessagingClient


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: Fast unit tests with fakes only")


@pytest.fixture
def storage() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def rule_store(storage: InMemoryKeyValueStore) -> RuleStore:
    return RuleStore(storage)


@pytest.fixture
def client() -> FakeMessagingClient:
    return FakeMessagingClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
