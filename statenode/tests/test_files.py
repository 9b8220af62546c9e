"""
File Metadata Tracker, upload transport and Upload Ingestion Coordinator tests.
"""
from __future__ import annotations

import io
from pathlib import Path

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from statenode.cache import SessionStore
from statenode.errors import PayloadTooLarge, StoreUnavailable, ValidationError
from statenode.files.tracker import list_files, record_file
from statenode.files.uploads import LocalDirectoryTransport, UploadDescriptor, ingest, make_storage_key
from statenode.models.session import FileMetadata, SessionRecord


def _metadata(name: str = "a.txt", key: str = "k-1") -> FileMetadata:
    return FileMetadata(original_name=name, storage_key=key, location_hint="local", size_bytes=3, mime_type="text/plain")


def _upload(contents: bytes, filename: str = "notes.txt", content_type: str = "text/plain") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(contents),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def _descriptor() -> UploadDescriptor:
    return UploadDescriptor(
        original_name="notes.txt",
        storage_key="1700000000000-uuid-notes.txt",
        location_hint="local",
        size_bytes=5,
        mime_type="text/plain",
    )


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------

def test_list_files_on_fresh_record() -> None:
    assert list_files(SessionRecord.new("sid")) == []


def test_record_file_appends_in_order() -> None:
    record = SessionRecord.new("sid")
    record_file(record, _metadata("a.txt", "k-1"))
    record_file(record, _metadata("b.txt", "k-2"))
    assert [f.storage_key for f in list_files(record)] == ["k-1", "k-2"]


@pytest.mark.parametrize("name, key", [("", "k-1"), ("a.txt", ""), ("  ", "k-1")])
def test_record_file_requires_name_and_key(name: str, key: str) -> None:
    record = SessionRecord.new("sid")
    with pytest.raises(ValidationError):
        record_file(record, _metadata(name, key))
    assert record.files == []


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

def test_storage_keys_are_unique_and_sanitized() -> None:
    first = make_storage_key("../../etc/my report.pdf")
    second = make_storage_key("../../etc/my report.pdf")
    assert first != second
    assert first.endswith("-my_report.pdf")
    assert "/" not in first


@pytest.mark.asyncio
async def test_transport_without_file_returns_none(tmp_path: Path) -> None:
    transport = LocalDirectoryTransport(str(tmp_path), max_bytes=1024)
    assert await transport.receive(None) is None


@pytest.mark.asyncio
async def test_transport_writes_bytes_and_describes_them(tmp_path: Path) -> None:
    transport = LocalDirectoryTransport(str(tmp_path / "up"), max_bytes=1024)

    descriptor = await transport.receive(_upload(b"hello"))

    assert descriptor.original_name == "notes.txt"
    assert descriptor.size_bytes == 5
    assert descriptor.mime_type == "text/plain"
    assert descriptor.location_hint == "local"
    assert (tmp_path / "up" / descriptor.storage_key).read_bytes() == b"hello"


@pytest.mark.asyncio
async def test_transport_enforces_size_ceiling(tmp_path: Path) -> None:
    transport = LocalDirectoryTransport(str(tmp_path), max_bytes=10)
    with pytest.raises(PayloadTooLarge):
        await transport.receive(_upload(b"x" * 11))
    assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ingest_records_metadata(store: SessionStore) -> None:
    metadata = await ingest(store, "sid-files", _descriptor())

    assert metadata.storage_key == "1700000000000-uuid-notes.txt"
    loaded = await store.load("sid-files")
    assert [f.storage_key for f in loaded.files] == [metadata.storage_key]


@pytest.mark.asyncio
async def test_ingest_without_descriptor_fails_even_when_store_is_down(
    store: SessionStore, fake_redis
) -> None:
    fake_redis.down = True
    await store.ping()

    with pytest.raises(ValidationError, match="No file uploaded"):
        await ingest(store, "sid-files", None)


@pytest.mark.asyncio
async def test_ingest_with_store_down_is_unavailable(store: SessionStore, fake_redis) -> None:
    fake_redis.down = True
    await store.ping()
    with pytest.raises(StoreUnavailable):
        await ingest(store, "sid-files", _descriptor())
