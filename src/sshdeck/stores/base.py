# sshdeck/stores/base.py

from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

import gi

gi.require_version("GObject", "2.0")
from gi.repository import GObject

from ..core.tasks import KeyedLock
from ..utils.exceptions import PersistenceError, handle_exception
from ..utils.logger import get_logger, log_store_event

T = TypeVar("T")
DeleteCall = Callable[[str], Awaitable[None]]


def index_of(items: Tuple[Any, ...], item_id: str) -> int:
    for i, item in enumerate(items):
        if item.id == item_id:
            return i
    return -1


def find(items: Tuple[T, ...], item_id: str) -> Optional[T]:
    i = index_of(items, item_id)
    return items[i] if i != -1 else None


def upsert(items: Tuple[T, ...], item: T) -> Tuple[T, ...]:
    """Replace the row with the same id in place, or append it."""
    i = index_of(items, item.id)
    if i == -1:
        return items + (item,)
    return items[:i] + (item,) + items[i + 1:]


def without(items: Tuple[T, ...], item_id: str) -> Tuple[T, ...]:
    return tuple(item for item in items if item.id != item_id)


def patch(items: Tuple[T, ...], item_id: str, **changes: Any) -> Tuple[Tuple[T, ...], Optional[T]]:
    """Return the new collection and the patched row (None when the id is unknown)."""
    i = index_of(items, item_id)
    if i == -1:
        return items, None
    updated = replace(items[i], **changes)
    return items[:i] + (updated,) + items[i + 1:], updated


class EntityStore(GObject.Object):
    """
    Shared machinery of the entity stores.

    Collections are tuples of frozen dataclasses and are only ever swapped
    whole, in a single synchronous step, so subscribers never see a
    half-applied mutation. Deletes are detached locally first; a delete the
    authority rejects is remembered in ``failed_deletes`` until
    ``retry_failed_deletes`` gets it through.

    A fetch runs inside ``_fetching()``. Rows created, updated or removed
    locally while it is in flight are recorded with a sequence number, and
    ``_reconcile`` re-applies them on top of the fetched snapshot so a slow
    refresh never resurrects a removed row or hides a new one.
    """

    __gsignals__ = {
        "sync-error": (GObject.SignalFlags.RUN_FIRST, None, (object,)),
        "delete-failed": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
    }

    def __init__(self, logger_name: str):
        super().__init__()
        self.logger = get_logger(logger_name)
        self._locks = KeyedLock()
        self._failed_deletes: Dict[Tuple[str, str], DeleteCall] = {}
        self._mutation_seq = 0
        self._fetches_in_flight = 0
        # (kind, id) -> (sequence number, still present locally)
        self._local_changes: Dict[Tuple[str, str], Tuple[int, bool]] = {}

    @property
    def failed_deletes(self) -> Tuple[Tuple[str, str], ...]:
        """``(kind, id)`` pairs whose authority delete has not gone through."""
        return tuple(self._failed_deletes)

    def failed_delete_ids(self, kind: str) -> Tuple[str, ...]:
        return tuple(item_id for k, item_id in self._failed_deletes if k == kind)

    # ------------------------------------------------------------------
    # Fetch reconciliation
    # ------------------------------------------------------------------

    def _mark(self, kind: str, item_id: str, present: bool) -> None:
        """Record a local mutation of one row."""
        self._mutation_seq += 1
        if self._fetches_in_flight:
            self._local_changes[(kind, item_id)] = (self._mutation_seq, present)

    @asynccontextmanager
    async def _fetching(self):
        """Bracket a fetch; yields the sequence number it started at."""
        self._fetches_in_flight += 1
        try:
            yield self._mutation_seq
        finally:
            self._fetches_in_flight -= 1
            if not self._fetches_in_flight:
                self._local_changes.clear()

    def _reconcile(
        self,
        kind: str,
        fetched: Tuple[T, ...],
        current: Tuple[T, ...],
        since: int,
    ) -> Tuple[T, ...]:
        """
        Lay the local mutations newer than ``since`` over a fetched snapshot.

        Removed rows are dropped; created or updated rows take their local
        version, which is appended when the snapshot does not have it yet.
        """
        changes = {
            item_id: present
            for (k, item_id), (seq, present) in self._local_changes.items()
            if k == kind and seq > since
        }
        if not changes:
            return fetched

        result = tuple(item for item in fetched if changes.get(item.id, True))
        for item_id, present in changes.items():
            local = find(current, item_id) if present else None
            if local is not None:
                result = upsert(result, local)
        return result

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    async def _delete_remote(self, kind: str, item_id: str, delete_call: DeleteCall) -> bool:
        """Issue the authority delete for a row already detached locally."""
        try:
            await delete_call(item_id)
        except PersistenceError as e:
            self.logger.error(f"Delete of {kind} '{item_id}' failed: {e.reason}")
            self._failed_deletes[(kind, item_id)] = delete_call
            self.emit("delete-failed", item_id)
            return False
        self._failed_deletes.pop((kind, item_id), None)
        log_store_event("deleted", kind, item_id)
        return True

    async def retry_failed_deletes(self) -> int:
        """Re-issue every delete that failed; returns how many went through."""
        succeeded = 0
        for (kind, item_id), delete_call in list(self._failed_deletes.items()):
            if await self._delete_remote(kind, item_id, delete_call):
                # A refresh may have brought the row back meanwhile
                self._drop_local(kind, item_id)
                succeeded += 1
        return succeeded

    def _drop_local(self, kind: str, item_id: str) -> None:
        raise NotImplementedError

    def _report_sync_error(self, context: str, error: Exception) -> None:
        handle_exception(error, context, self.logger.name)
        self.emit("sync-error", error)
