"""
tracker.py - File Metadata Tracker.

Append/list over SessionRecord.files. Entries are never updated or removed
by the application.
"""
import logging
from typing import List

from statenode.errors import ValidationError
from statenode.models.session import FileMetadata, SessionRecord

logger = logging.getLogger(__name__)


def list_files(record: SessionRecord) -> List[FileMetadata]:
    return list(record.files)


def record_file(record: SessionRecord, metadata: FileMetadata) -> FileMetadata:
    """
    Append an uploaded-file descriptor.

    Raises:
        ValidationError: original_name or storage_key blank.
    """
    missing = [
        name
        for name, value in (("originalName", metadata.original_name), ("storageKey", metadata.storage_key))
        if not value or not value.strip()
    ]
    if missing:
        raise ValidationError(
            "File metadata is incomplete",
            details=[{"field": name, "issue": "must be non-empty"} for name in missing],
        )
    record.files.append(metadata)
    logger.info(
        "File recorded session_id=%s storage_key=%s size=%d",
        record.session_id, metadata.storage_key, metadata.size_bytes,
    )
    return metadata
