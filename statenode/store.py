"""
store.py - Session persistence facade for statenode.

Every stateful route follows the same strictly sequential cycle:

    record = await load_or_create(store, session_id)   # load
    ...mutate record via tasks.manager / files.tracker...
    await persist(store, record)                        # save

No route touches Redis keys directly. The record is a plain value passed
into each manager, so managers stay testable without any transport.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from statenode.cache import SessionStore
from statenode.models.session import SessionRecord

logger = logging.getLogger(__name__)


async def load_or_create(store: SessionStore, session_id: str) -> SessionRecord:
    """
    Load the session record, or build a fresh one if the store has none.
    An absent record (expired, evicted, never written) is a normal state.
    """
    record = await store.load(session_id)
    if record is None:
        logger.info("Initializing session record session_id=%s", session_id)
        record = SessionRecord.new(session_id)
    return record


async def persist(store: SessionStore, record: SessionRecord) -> None:
    """Write the full record back; restarts its TTL."""
    await store.save(record.session_id, record)


@asynccontextmanager
async def session_scope(store: SessionStore, session_id: str) -> AsyncIterator[SessionRecord]:
    """
    load → yield for mutation → save.
    Nothing is saved if the body raises, so a failed operation leaves no partial write.
    """
    record = await load_or_create(store, session_id)
    yield record
    await persist(store, record)
