"""
uploads.py - Upload transport and Upload Ingestion Coordinator.

The transport turns a multipart file part into a descriptor once the bytes are
placed in storage; it owns the size ceiling. The coordinator trusts that
descriptor and records it in the session via files.tracker.

Storage keys follow '{epoch_ms}-{uuid4}-{original_name}' so keys stay unique
even when the same file name is uploaded twice.
"""
import asyncio
import logging
import os
import re
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from statenode.cache import SessionStore
from statenode.errors import PayloadTooLarge, ValidationError
from statenode.files.tracker import record_file
from statenode.models.session import FileMetadata
from statenode.store import session_scope

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class UploadDescriptor:
    """What the transport reports after the bytes have been placed."""
    original_name: str
    storage_key: str
    location_hint: str
    size_bytes: int
    mime_type: str


def make_storage_key(original_name: str) -> str:
    safe_name = _UNSAFE_CHARS.sub("_", os.path.basename(original_name)) or "upload"
    return f"{int(time.time() * 1000)}-{uuid.uuid4()}-{safe_name}"


class UploadTransport(ABC):
    """Places uploaded bytes somewhere durable and describes where."""

    @abstractmethod
    async def receive(self, upload: Optional[UploadFile]) -> Optional[UploadDescriptor]:
        """
        Returns None when the request carried no file part.

        Raises:
            PayloadTooLarge: payload exceeds the transport's ceiling.
        """

    @abstractmethod
    async def discard(self, descriptor: UploadDescriptor) -> None:
        """Remove stored bytes that never made it into a session."""


class LocalDirectoryTransport(UploadTransport):
    """Writes uploads under a local directory (location hint 'local')."""

    location_hint = "local"

    def __init__(self, directory: str, max_bytes: int):
        self.directory = Path(directory)
        self.max_bytes = max_bytes

    async def _read_capped(self, upload: UploadFile) -> bytes:
        # Read in chunks and stop one chunk past the limit - never buffer an unbounded body
        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = await upload.read(_CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > self.max_bytes:
                raise PayloadTooLarge(
                    f"File exceeds the {self.max_bytes} byte limit",
                    details=[{"field": "file", "issue": f"max {self.max_bytes} bytes"}],
                )
            chunks.append(chunk)
        return b"".join(chunks)

    def _write(self, storage_key: str, contents: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        (self.directory / storage_key).write_bytes(contents)

    def _remove(self, storage_key: str) -> None:
        (self.directory / storage_key).unlink(missing_ok=True)

    async def discard(self, descriptor: UploadDescriptor) -> None:
        await asyncio.to_thread(self._remove, descriptor.storage_key)
        logger.info("Upload discarded storage_key=%s", descriptor.storage_key)

    async def receive(self, upload: Optional[UploadFile]) -> Optional[UploadDescriptor]:
        if upload is None or not upload.filename:
            return None
        contents = await self._read_capped(upload)
        storage_key = make_storage_key(upload.filename)
        # Disk write is blocking - keep it off the event loop
        await asyncio.to_thread(self._write, storage_key, contents)
        logger.info("Upload stored storage_key=%s size=%d", storage_key, len(contents))
        return UploadDescriptor(
            original_name=upload.filename,
            storage_key=storage_key,
            location_hint=self.location_hint,
            size_bytes=len(contents),
            mime_type=upload.content_type or "application/octet-stream",
        )


async def ingest(
    store: SessionStore,
    session_id: str,
    descriptor: Optional[UploadDescriptor],
) -> FileMetadata:
    """
    Record a completed upload in the session's file list.

    Raises:
        ValidationError: no descriptor (request had no file part). Checked before
            the store is touched, so this holds even when the store is down.
        StoreUnavailable: the session could not be loaded or saved.
    """
    if descriptor is None:
        raise ValidationError("No file uploaded")
    metadata = FileMetadata(
        original_name=descriptor.original_name,
        storage_key=descriptor.storage_key,
        location_hint=descriptor.location_hint,
        size_bytes=descriptor.size_bytes,
        mime_type=descriptor.mime_type,
    )
    async with session_scope(store, session_id) as record:
        record_file(record, metadata)
    return metadata
