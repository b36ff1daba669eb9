import asyncio
import weakref
from typing import Annotated
from fastapi import Depends
from sqlalchemy.orm import Session
from .infra.db import get_db
from .settings import Settings, get_settings
from .tasks.port_scan import ConcurrentPortProbe


settings_dependency = Annotated[Settings, Depends(get_settings)]
db_dependency = Annotated[Session, Depends(get_db)]

# asyncio primitives belong to one event loop; keep one semaphore per (loop, limit).
_limiters: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[int, asyncio.Semaphore]]" = (
    weakref.WeakKeyDictionary()
)


def shared_limiter(max_concurrent: int) -> asyncio.Semaphore:
    """Semaphore shared by every scan running on the current event loop."""
    per_loop = _limiters.setdefault(asyncio.get_running_loop(), {})
    if max_concurrent not in per_loop:
        per_loop[max_concurrent] = asyncio.Semaphore(max_concurrent)
    return per_loop[max_concurrent]


async def get_port_probe(settings: settings_dependency) -> ConcurrentPortProbe:
    limiter = None
    if settings.scan_max_concurrent_probes > 0:
        limiter = shared_limiter(settings.scan_max_concurrent_probes)
    return ConcurrentPortProbe(timeout_s=settings.scan_timeout_ms / 1000.0, limiter=limiter)


probe_dependency = Annotated[ConcurrentPortProbe, Depends(get_port_probe)]
