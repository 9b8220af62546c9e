"""
models/session.py - Session Record model and its owned collections.

One SessionRecord per session id, stored as JSON under the Redis key
'session:{session_id}'. The record is loaded at the start of a request,
mutated in place by the task / file managers, saved, and then discarded.

Wire format is camelCase (createdAt, storageKey, viewCount, ...) so stored
records and API responses share one shape; attributes are snake_case in Python.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    """Opaque, collision-resistant task identifier."""
    return uuid.uuid4().hex


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"

    @classmethod
    def coerce(cls, value: Any) -> "Priority":
        """Map any input onto a Priority; missing or unrecognized values become medium."""
        if isinstance(value, Priority):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.medium


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

class Task(_CamelModel):
    """A single to-do item. id and created_at are fixed at creation."""

    id: str = Field(default_factory=new_task_id)
    title: str = Field(min_length=1)
    description: str = ""
    priority: Priority = Priority.medium
    completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value: Any) -> Priority:
        return Priority.coerce(value)

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> str:
        return value or ""


# ---------------------------------------------------------------------------
# FileMetadata
# ---------------------------------------------------------------------------

class FileMetadata(_CamelModel):
    """Descriptor of an uploaded file. Entries are append-only."""

    original_name: str
    storage_key: str
    location_hint: str = "memory"
    size_bytes: int = Field(default=0, ge=0)
    mime_type: str = "application/octet-stream"
    uploaded_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# SessionRecord
# ---------------------------------------------------------------------------

class SessionRecord(_CamelModel):
    """
    Deserialized working copy of one session's state.

    tasks and files keep insertion order (display order).
    view_count never decreases; first_seen_at is set once when the record is created.
    """

    session_id: str
    tasks: List[Task] = Field(default_factory=list)
    files: List[FileMetadata] = Field(default_factory=list)
    view_count: int = Field(default=0, ge=0)
    first_seen_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def new(cls, session_id: str) -> "SessionRecord":
        return cls(session_id=session_id)

    def register_view(self) -> int:
        self.view_count += 1
        return self.view_count

    def dumps(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def loads(cls, raw: str) -> "SessionRecord":
        return cls.model_validate_json(raw)
