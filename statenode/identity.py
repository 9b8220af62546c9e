"""
identity.py - Session Identity Resolver.

Turns the token a client echoes back (cookie or X-Session-Token header) into a
session id, minting a new one when the token is missing or malformed.

Token format:  {session_id}.{signature}
  session_id   secrets.token_urlsafe(24) - 32 URL-safe characters
  signature    first 32 hex chars of HMAC-SHA256(session_secret, session_id)

The resolver only manufactures identifiers; it never touches the store.
"""
import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass
from typing import Optional

from statenode.config import settings

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")
_SIGNATURE_LEN = 32


@dataclass(frozen=True)
class ResolvedSession:
    session_id: str
    token: str
    is_new: bool  # caller must send token back to the client


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


def sign(session_id: str, secret: Optional[str] = None) -> str:
    key = (secret or settings.session_secret).encode("utf-8")
    digest = hmac.new(key, session_id.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{session_id}.{digest[:_SIGNATURE_LEN]}"


def unsign(token: str, secret: Optional[str] = None) -> Optional[str]:
    """Return the session id carried by a well-formed, correctly signed token, else None."""
    session_id, sep, _ = token.rpartition(".")
    if not sep or not _SESSION_ID_RE.match(session_id):
        return None
    if not hmac.compare_digest(sign(session_id, secret).encode("utf-8"), token.encode("utf-8")):
        return None
    return session_id


def first_valid_token(*candidates: Optional[str], secret: Optional[str] = None) -> Optional[str]:
    """First candidate that carries a correctly signed session id; a stale cookie must not mask a good header."""
    for candidate in candidates:
        if candidate and unsign(candidate.strip(), secret) is not None:
            return candidate
    return None


def resolve(token: Optional[str], secret: Optional[str] = None) -> ResolvedSession:
    """
    Map an inbound token to a session id. Never fails.

    A present, well-formed token is returned unchanged with its session id.
    Anything else yields a freshly generated identity flagged is_new=True.
    """
    if token:
        session_id = unsign(token.strip(), secret)
        if session_id is not None:
            return ResolvedSession(session_id=session_id, token=token.strip(), is_new=False)
    session_id = new_session_id()
    return ResolvedSession(session_id=session_id, token=sign(session_id, secret), is_new=True)
