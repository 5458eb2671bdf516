"""
Workspace loading and background persistence.

The initial load fans out one request per collection and joins them
all-or-nothing; if any load fails the whole batch falls back to locally cached
data. Writes that follow an optimistic local update run in the background and
their failures are only logged.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from interfaces import PersistenceStore


logger = logging.getLogger(__name__)

COLLECTION_KINDS: Sequence[str] = ("project", "asset", "bible", "version", "usage")

_pending_writes: Set["asyncio.Task[None]"] = set()


@dataclass
class WorkspaceState:
    collections: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    degraded: bool = False
    error: Optional[str] = None


async def load_workspace(
    store: PersistenceStore,
    cache: Optional[Mapping[str, List[Dict[str, Any]]]] = None,
    kinds: Sequence[str] = COLLECTION_KINDS,
) -> WorkspaceState:
    """Load every collection at once; any failure degrades to the local cache."""
    cache = cache or {}
    try:
        results = await asyncio.gather(*(store.load(kind) for kind in kinds))
    except Exception as exc:
        logger.warning("Workspace load failed, using cached data: %s", exc)
        return WorkspaceState(
            collections={kind: list(cache.get(kind, [])) for kind in kinds},
            degraded=True,
            error=str(exc),
        )
    logger.info("Workspace loaded: %s", ", ".join(f"{kind}={len(rows)}" for kind, rows in zip(kinds, results)))
    return WorkspaceState(collections={kind: list(rows) for kind, rows in zip(kinds, results)})


async def _write(store: PersistenceStore, kind: str, entity: Dict[str, Any]) -> None:
    try:
        await store.save(kind, entity)
    except Exception:
        logger.exception("Background save of %s %s failed", kind, entity.get("id", "?"))


def persist_in_background(store: PersistenceStore, kind: str, entity: Dict[str, Any]) -> "asyncio.Task[None]":
    """Schedule a durable write without waiting for it. Must be called inside a running loop."""
    task = asyncio.get_running_loop().create_task(_write(store, kind, entity))
    _pending_writes.add(task)
    task.add_done_callback(_pending_writes.discard)
    return task


async def drain_pending_writes() -> None:
    """Wait for scheduled background writes (shutdown and tests)."""
    if _pending_writes:
        await asyncio.gather(*list(_pending_writes))
