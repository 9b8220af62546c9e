"""
deps.py - FastAPI dependencies shared by the routers.

app.state resources (store, upload_transport) are set in main.py lifespan.
request.state.session is set by the session identity middleware in main.py.
"""
from fastapi import Request

from statenode.cache import SessionStore
from statenode.errors import StoreUnavailable
from statenode.files.uploads import UploadTransport
from statenode.identity import ResolvedSession


def get_store(request: Request) -> SessionStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StoreUnavailable()
    return store


def get_session(request: Request) -> ResolvedSession:
    """Session identity for this request; marks it so the middleware issues the cookie."""
    request.state.session_used = True
    return request.state.session


def get_upload_transport(request: Request) -> UploadTransport:
    return request.app.state.upload_transport
