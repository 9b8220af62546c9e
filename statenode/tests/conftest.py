"""
Test configuration for statenode tests.

sys.path is configured so 'from statenode...' resolves when pytest is run
from the project root without an editable install.

No live Redis is needed: FakeRedis below is an in-memory async double that
implements the handful of commands SessionStore issues (PING, GET, SETEX, DEL)
and can be switched 'down' to simulate an unreachable store.
"""
import asyncio
import sys
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

_project_root = Path(__file__).parent.parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from statenode.cache import SessionStore  # noqa: E402
from statenode.config import Settings  # noqa: E402
from statenode.files.uploads import LocalDirectoryTransport  # noqa: E402


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.down = False
        self.delay: float = 0.0
        self.closed = False

    async def _io(self) -> None:
        if self.down:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")
        if self.delay:
            await asyncio.sleep(self.delay)

    async def ping(self) -> bool:
        await self._io()
        return True

    async def get(self, key: str) -> Optional[str]:
        await self._io()
        return self.data.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        await self._io()
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> int:
        await self._io()
        self.ttls.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        redis_url="redis://fake:6379",
        session_ttl_seconds=600,
        store_op_timeout_seconds=0.2,
        reconnect_base_delay_seconds=0.01,
        reconnect_max_delay_seconds=0.05,
        health_probe_interval_seconds=0.05,
        upload_dir=str(tmp_path / "uploads"),
        upload_max_bytes=1024,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def store(fake_redis: FakeRedis, test_settings: Settings) -> SessionStore:
    """An available SessionStore over FakeRedis (no background supervisor)."""
    session_store = SessionStore(client=fake_redis, config=test_settings)
    await session_store.ping()
    return session_store


def _wire_app(store: SessionStore, test_settings: Settings):
    from statenode.main import app

    app.state.store = store
    app.state.upload_transport = LocalDirectoryTransport(
        test_settings.upload_dir, test_settings.upload_max_bytes
    )
    return app


@pytest_asyncio.fixture
async def client(store: SessionStore, test_settings: Settings):
    """Async httpx client using ASGI transport - no live server needed."""
    app = _wire_app(store, test_settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest_asyncio.fixture
async def other_client(store: SessionStore, test_settings: Settings):
    """Second client with its own cookie jar - a different browser session."""
    app = _wire_app(store, test_settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
