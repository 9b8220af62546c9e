"""
health.py - Readiness Reporter.

Reads only the store's connectivity flag, never session data, so it answers
even when every stateful route is failing. Used by load balancers:
200 when UP, 503 when DEGRADED.
"""
import time
from datetime import datetime, timezone
from typing import Any, Optional

from statenode.cache import SessionStore

STATUS_UP = "UP"
STATUS_DEGRADED = "DEGRADED"

# Process start, for uptime
_started_at = time.monotonic()


def uptime_seconds() -> float:
    return round(time.monotonic() - _started_at, 3)


def report(store: Optional[SessionStore], instance_id: str) -> dict[str, Any]:
    """Build the health payload. A missing store counts as unavailable."""
    store_available = bool(store is not None and store.available)
    store_state = store.state.value if store is not None else "absent"
    return {
        "status": STATUS_UP if store_available else STATUS_DEGRADED,
        "instanceIdentity": instance_id,
        "uptimeSeconds": uptime_seconds(),
        "storeAvailable": store_available,
        "storeState": store_state,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
