"""
manager.py - Task Collection Manager.

Operations over SessionRecord.tasks. Each function takes the loaded record
explicitly and mutates it in place; the caller saves it afterwards
(see statenode.store.session_scope). Nothing here does I/O.
"""
import logging
from typing import Any, List, Optional

from statenode.errors import NotFound, ValidationError
from statenode.models.session import Priority, SessionRecord, Task

logger = logging.getLogger(__name__)


def list_tasks(record: SessionRecord) -> List[Task]:
    """Tasks in creation order. Returns a copy so callers cannot reorder the record."""
    return list(record.tasks)


def create_task(
    record: SessionRecord,
    title: Optional[str],
    description: Optional[str] = None,
    priority: Any = None,
) -> Task:
    """
    Append a new task.

    Raises:
        ValidationError: title missing or blank - the record is left untouched.
    """
    if not isinstance(title, str) or not title.strip():
        raise ValidationError(
            "Title is required",
            details=[{"field": "title", "issue": "must be a non-empty string"}],
        )
    task = Task(
        title=title,
        description=description or "",
        priority=Priority.coerce(priority),
    )
    record.tasks.append(task)
    logger.info("Task created session_id=%s task_id=%s", record.session_id, task.id)
    return task


def _find(record: SessionRecord, task_id: str) -> Task:
    if not record.tasks:
        raise NotFound("No tasks found")
    for task in record.tasks:
        if task.id == task_id:
            return task
    raise NotFound("Task not found")


def toggle_task(record: SessionRecord, task_id: str) -> Task:
    """Flip `completed` on the matching task."""
    task = _find(record, task_id)
    task.completed = not task.completed
    logger.info(
        "Task toggled session_id=%s task_id=%s completed=%s",
        record.session_id, task_id, task.completed,
    )
    return task


def remove_task(record: SessionRecord, task_id: str) -> None:
    """Delete the matching task; the collection shrinks by exactly one."""
    task = _find(record, task_id)
    record.tasks.remove(task)
    logger.info("Task deleted session_id=%s task_id=%s", record.session_id, task_id)
