"""
File routes - GET /files, POST /upload

POST /upload takes one multipart field named 'file'. The upload transport
enforces the size ceiling (413) before anything is recorded; a request with no
file part is rejected with 400 regardless of store state.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from statenode.cache import SessionStore
from statenode.config import settings
from statenode.deps import get_session, get_store, get_upload_transport
from statenode.errors import StoreUnavailable
from statenode.files.tracker import list_files
from statenode.files.uploads import UploadTransport, ingest
from statenode.identity import ResolvedSession
from statenode.store import session_scope

router = APIRouter(tags=["Files"])


@router.get("/files")
async def get_files(
    store: SessionStore = Depends(get_store),
    session: ResolvedSession = Depends(get_session),
) -> JSONResponse:
    async with session_scope(store, session.session_id) as record:
        files = list_files(record)
    return JSONResponse(
        status_code=200,
        content={
            "files": [entry.to_wire() for entry in files],
            "instance": settings.instance_id,
        },
    )


@router.post("/upload")
async def upload_file(
    file: Optional[UploadFile] = File(default=None),
    store: SessionStore = Depends(get_store),
    session: ResolvedSession = Depends(get_session),
    transport: UploadTransport = Depends(get_upload_transport),
) -> JSONResponse:
    """
    Returns:
        200: {message, file, instance}
        400: no file part
        413: file over upload_max_bytes
        503: session store unavailable
    """
    # Refuse before writing any bytes when the session cannot be recorded
    if file is not None and file.filename and not store.available:
        raise StoreUnavailable()
    descriptor = await transport.receive(file)
    try:
        metadata = await ingest(store, session.session_id, descriptor)
    except StoreUnavailable:
        if descriptor is not None:
            await transport.discard(descriptor)
        raise
    return JSONResponse(
        status_code=200,
        content={
            "message": "File uploaded successfully",
            "file": metadata.to_wire(),
            "instance": settings.instance_id,
        },
    )
