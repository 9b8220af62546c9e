"""
cache.py - Redis-backed shared state store for statenode sessions.

Namespace conventions:
  session:{session_id}  → JSON-serialized SessionRecord   TTL session_ttl_seconds (24h)

Design:
  - Uses redis.asyncio (async client, part of redis-py 5.x - do NOT use aioredis separately)
  - One SessionStore per process, created in lifespan, stored on app.state.store
  - Connectivity is tracked as a small state machine:
        connecting → available ⇄ unavailable   (closed after shutdown)
    A background supervisor task PINGs the store and flips the state; request-path
    operations never retry, they raise StoreUnavailable and wake the supervisor.
  - Every write is a full overwrite with SETEX, so the TTL window restarts on each save
  - Last write wins across concurrent requests for the same session id
  - Logs only session_id (not record contents)
"""
import asyncio
import contextlib
import logging
from enum import Enum
from typing import Optional

import redis.asyncio as aioredis
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from statenode.config import Settings, settings as default_settings
from statenode.errors import StoreUnavailable
from statenode.models.session import SessionRecord

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session"


def make_session_key(session_id: str) -> str:
    """Build Redis key for a session record: session:{session_id}"""
    return f"{SESSION_PREFIX}:{session_id}"


def reconnect_delay(attempt: int, base: float, maximum: float) -> float:
    """
    Backoff before reconnect attempt number `attempt` (1-based).
    Doubles from `base` and never exceeds `maximum`.
    """
    if attempt < 1:
        return 0.0
    return min(base * (2 ** (attempt - 1)), maximum)


class StoreState(str, Enum):
    connecting = "connecting"
    available = "available"
    unavailable = "unavailable"
    closed = "closed"


def create_redis_client(config: Settings) -> aioredis.Redis:
    """
    Build the process-wide async Redis client. No I/O happens here;
    the first PING from the supervisor establishes the connection.
    """
    return aioredis.from_url(
        config.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
        socket_connect_timeout=config.store_connect_timeout_seconds,
        socket_timeout=config.store_op_timeout_seconds,
    )


class SessionStore:
    """
    Key-value adapter over Redis holding one SessionRecord per session id.

    load() returns None for a never-seen or expired id; that is not an error.
    load()/save()/delete() raise StoreUnavailable when the store is down,
    when an operation exceeds the configured timeout, or after close().
    """

    def __init__(
        self,
        client: Optional[aioredis.Redis] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.client = client if client is not None else create_redis_client(self.config)
        self.ttl = self.config.session_ttl_seconds
        self.op_timeout = self.config.store_op_timeout_seconds
        self._state = StoreState.connecting
        self._supervisor: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def available(self) -> bool:
        return self._state is StoreState.available

    def _set_state(self, new_state: StoreState) -> None:
        if self._state is StoreState.closed or new_state is self._state:
            return
        previous, self._state = self._state, new_state
        if new_state is StoreState.available:
            logger.info("Session store available (was %s) url=%s", previous.value, self.config.redis_url)
        else:
            logger.warning("Session store %s (was %s)", new_state.value, previous.value)

    def _mark_unavailable(self) -> None:
        self._set_state(StoreState.unavailable)
        if self._wake is not None:
            self._wake.set()

    async def ping(self) -> bool:
        """Single connectivity probe; updates state and never raises."""
        if self._state is StoreState.closed:
            return False
        try:
            await asyncio.wait_for(self.client.ping(), timeout=self.op_timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.debug("Session store probe failed: %s", exc)
            self._set_state(StoreState.unavailable)
            return False
        self._set_state(StoreState.available)
        return True

    async def start(self) -> None:
        """
        Probe once, then keep a supervisor task running for the process lifetime.
        Startup never fails because the store is down - the node serves degraded.
        """
        # asyncio.Event MUST be created inside the running loop
        self._wake = asyncio.Event()
        await self.ping()
        self._supervisor = asyncio.create_task(self._supervise(), name="session-store-supervisor")

    async def _supervise(self) -> None:
        attempt = 0
        while self._state is not StoreState.closed:
            if self.available:
                attempt = 0
                wait_for = self.config.health_probe_interval_seconds
            else:
                attempt += 1
                wait_for = reconnect_delay(
                    attempt,
                    self.config.reconnect_base_delay_seconds,
                    self.config.reconnect_max_delay_seconds,
                )
                if attempt == 1 or attempt % 50 == 0:
                    logger.info("Reconnecting to session store attempt=%d delay=%.2fs", attempt, wait_for)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=wait_for)
            self._wake.clear()
            await self.ping()

    async def close(self) -> None:
        """Stop the supervisor and release the connection pool. Called exactly once at shutdown."""
        self._state = StoreState.closed
        if self._supervisor is not None:
            self._supervisor.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._supervisor
            self._supervisor = None
        await self.client.aclose()
        logger.info("Session store connection closed")

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    async def _call(self, operation, *args):
        if not self.available:
            raise StoreUnavailable()
        try:
            return await asyncio.wait_for(operation(*args), timeout=self.op_timeout)
        except asyncio.TimeoutError:
            logger.warning("Session store operation timed out after %.2fs", self.op_timeout)
            self._mark_unavailable()
            raise StoreUnavailable("Session store timed out")
        except (RedisError, OSError) as exc:
            logger.warning("Session store operation failed: %s", exc)
            self._mark_unavailable()
            raise StoreUnavailable() from exc

    async def load(self, session_id: str) -> Optional[SessionRecord]:
        """
        Retrieve a session record.
        Returns None if the session expired, was cleared, or never existed.
        """
        raw = await self._call(self.client.get, make_session_key(session_id))
        if raw is None:
            return None
        try:
            return SessionRecord.loads(raw)
        except PydanticValidationError:
            logger.warning("Discarding unreadable session record session_id=%s", session_id)
            return None

    async def save(self, session_id: str, record: SessionRecord, ttl: Optional[int] = None) -> None:
        """
        Overwrite the full record and restart its expiry window.
        """
        ttl = ttl or self.ttl
        await self._call(self.client.setex, make_session_key(session_id), ttl, record.dumps())
        logger.debug("Session saved session_id=%s ttl=%ds", session_id, ttl)

    async def delete(self, session_id: str) -> None:
        """Remove a session record - equivalent to eviction."""
        await self._call(self.client.delete, make_session_key(session_id))
        logger.info("Session cleared session_id=%s", session_id)
