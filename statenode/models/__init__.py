"""
models/__init__.py - re-exports the session record model and its members
so callers can import them from statenode.models directly.
"""
from statenode.models.session import FileMetadata, Priority, SessionRecord, Task

__all__ = ["FileMetadata", "Priority", "SessionRecord", "Task"]
