"""
Welfare Admin - Test Configuration and Fixtures
"""
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

from welfare_admin.api.main import create_app
from welfare_admin.clients import MemoryDataSource, OutboxEmailClient, demo_tables
from welfare_admin.config import Settings
from welfare_admin.models import get_entity
from welfare_admin.tools import SelectionSet
from welfare_admin.utils import ResultCache


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def families():
    return get_entity("families")


@pytest.fixture
def support_requests():
    return get_entity("support_requests")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResultCache:
    return ResultCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def selection() -> SelectionSet:
    return SelectionSet()


@pytest.fixture
def mock_source() -> AsyncMock:
    """Data source whose calls can be asserted on"""
    source = AsyncMock()
    source.fetch_rows.return_value = []
    source.fetch_one.return_value = None
    source.update_many.return_value = None
    source.delete_many.return_value = None
    return source


@pytest.fixture
def memory_source() -> MemoryDataSource:
    return MemoryDataSource(demo_tables())


@pytest.fixture
def outbox() -> OutboxEmailClient:
    return OutboxEmailClient()


@pytest.fixture
def demo_settings() -> Settings:
    """Settings with no hosted backend, regardless of the environment"""
    return Settings(_env_file=None, supabase_url=None, supabase_anon_key=None)


@pytest.fixture
async def client(demo_settings, memory_source, outbox) -> AsyncGenerator[AsyncClient, None]:
    """Test client over an app backed by the in-memory demo tables"""
    app = create_app(settings=demo_settings, data_source=memory_source, email_client=outbox)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac
