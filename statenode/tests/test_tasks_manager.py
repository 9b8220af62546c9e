"""
Task Collection Manager tests - pure operations on a SessionRecord, no store.

Covers: idempotent reads, id uniqueness, toggle involution, removal
monotonicity, title validation, and not-found handling.
"""
from __future__ import annotations

import pytest

from statenode.errors import NotFound, ValidationError
from statenode.models.session import Priority, SessionRecord
from statenode.tasks.manager import create_task, list_tasks, remove_task, toggle_task


@pytest.fixture
def record() -> SessionRecord:
    return SessionRecord.new("sid-tasks")


def test_list_on_fresh_record_is_empty(record: SessionRecord) -> None:
    assert list_tasks(record) == []


def test_list_is_idempotent(record: SessionRecord) -> None:
    create_task(record, "a")
    create_task(record, "b")
    assert list_tasks(record) == list_tasks(record)


def test_list_returns_copy(record: SessionRecord) -> None:
    create_task(record, "a")
    listed = list_tasks(record)
    listed.clear()
    assert len(record.tasks) == 1


def test_create_defaults(record: SessionRecord) -> None:
    task = create_task(record, "Buy milk")
    assert task.title == "Buy milk"
    assert task.description == ""
    assert task.priority is Priority.medium
    assert task.completed is False
    assert record.tasks == [task]


def test_create_keeps_explicit_fields(record: SessionRecord) -> None:
    task = create_task(record, "Ship", description="release 1.0", priority="high")
    assert task.description == "release 1.0"
    assert task.priority is Priority.high


def test_create_unknown_priority_falls_back_to_medium(record: SessionRecord) -> None:
    assert create_task(record, "x", priority="critical").priority is Priority.medium


@pytest.mark.parametrize("n", [1, 5, 50])
def test_created_ids_are_unique_and_ordered(record: SessionRecord, n: int) -> None:
    created = [create_task(record, f"task {i}") for i in range(n)]
    ids = [t.id for t in list_tasks(record)]
    assert len(ids) == n
    assert len(set(ids)) == n
    assert ids == [t.id for t in created]


@pytest.mark.parametrize("title", ["", "   ", None, 42])
def test_create_rejects_missing_title(record: SessionRecord, title) -> None:
    with pytest.raises(ValidationError) as excinfo:
        create_task(record, title)
    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Title is required"
    assert record.tasks == []


def test_toggle_is_an_involution(record: SessionRecord) -> None:
    task = create_task(record, "a")
    assert toggle_task(record, task.id).completed is True
    assert toggle_task(record, task.id).completed is False


def test_remove_shrinks_by_one(record: SessionRecord) -> None:
    first = create_task(record, "a")
    second = create_task(record, "b")
    third = create_task(record, "c")

    remove_task(record, second.id)

    remaining = list_tasks(record)
    assert len(remaining) == 2
    assert second.id not in {t.id for t in remaining}
    assert [t.id for t in remaining] == [first.id, third.id]


def test_toggle_and_remove_on_empty_record(record: SessionRecord) -> None:
    with pytest.raises(NotFound, match="No tasks found"):
        toggle_task(record, "nonexistent")
    with pytest.raises(NotFound, match="No tasks found"):
        remove_task(record, "nonexistent")


def test_toggle_and_remove_unknown_id_leave_collection_unchanged(record: SessionRecord) -> None:
    task = create_task(record, "a")
    before = [t.model_copy() for t in record.tasks]

    with pytest.raises(NotFound, match="Task not found"):
        toggle_task(record, "nonexistent")
    with pytest.raises(NotFound, match="Task not found"):
        remove_task(record, "nonexistent")

    assert record.tasks == before
    assert record.tasks[0].id == task.id
