import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from campusmod.main import app
from campusmod.moderation.domain import container
from campusmod.moderation.domain.data_service import InMemoryDataService


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from campusmod.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture
def data_service() -> InMemoryDataService:
	return InMemoryDataService.with_moderation_constraints()


@pytest.fixture(autouse=True)
def moderation_container(data_service):
	"""Point the module-level container at a fresh in-memory store for each test."""
	container.configure(data_service=data_service, allow_terminal_transitions=False)
	try:
		yield data_service
	finally:
		container.configure(data_service=InMemoryDataService.with_moderation_constraints())


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
