"""
Task routes - GET /tasks, POST /tasks, PUT /tasks/{task_id}/toggle, DELETE /tasks/{task_id}

Each handler runs one load → mutate → save cycle through store.session_scope.
Validation (400) and not-found (404) are raised by tasks.manager; store
failures surface as StoreUnavailable (503). All are rendered by main.py handlers.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from statenode.cache import SessionStore
from statenode.config import settings
from statenode.deps import get_session, get_store
from statenode.identity import ResolvedSession
from statenode.store import session_scope
from statenode.tasks.manager import create_task, list_tasks, remove_task, toggle_task
from statenode.tasks.schemas import TaskCreateRequest

router = APIRouter(tags=["Tasks"])


@router.get("/tasks")
async def get_tasks(
    store: SessionStore = Depends(get_store),
    session: ResolvedSession = Depends(get_session),
) -> JSONResponse:
    """List this session's tasks in creation order; initializes an empty record on first use."""
    async with session_scope(store, session.session_id) as record:
        tasks = list_tasks(record)
    return JSONResponse(
        status_code=200,
        content={
            "tasks": [task.to_wire() for task in tasks],
            "instance": settings.instance_id,
        },
    )


@router.post("/tasks")
async def post_task(
    body: Optional[TaskCreateRequest] = None,
    store: SessionStore = Depends(get_store),
    session: ResolvedSession = Depends(get_session),
) -> JSONResponse:
    """
    Create a task.

    Returns:
        201: {message, task, instance}
        400: title missing or blank
    """
    body = body or TaskCreateRequest()
    async with session_scope(store, session.session_id) as record:
        task = create_task(record, body.title, body.description, body.priority)
    return JSONResponse(
        status_code=201,
        content={"message": "Task created", "task": task.to_wire(), "instance": settings.instance_id},
    )


@router.put("/tasks/{task_id}/toggle")
async def put_task_toggle(
    task_id: str,
    store: SessionStore = Depends(get_store),
    session: ResolvedSession = Depends(get_session),
) -> JSONResponse:
    async with session_scope(store, session.session_id) as record:
        task = toggle_task(record, task_id)
    return JSONResponse(
        status_code=200,
        content={"message": "Task updated", "task": task.to_wire(), "instance": settings.instance_id},
    )


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    store: SessionStore = Depends(get_store),
    session: ResolvedSession = Depends(get_session),
) -> JSONResponse:
    async with session_scope(store, session.session_id) as record:
        remove_task(record, task_id)
    return JSONResponse(
        status_code=200,
        content={"message": "Task deleted", "instance": settings.instance_id},
    )
