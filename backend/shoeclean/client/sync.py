"""
Sync coordinator: optimistic writes against the entity store, reconciled
with the remote store.

Creates are awaited. The record goes in under a temporary id, the remote
insert runs, and the temporary entry is then swapped for the canonical
record in one collection replace. On failure the entry is removed and the
error re-raised.

Updates and deletes are applied locally first and pushed in a background
task. They are never rolled back; the task resolves to a SyncResult whose
`error` carries the remote failure.

Inbound change events trigger a full refresh of the store. Bursts are
coalesced: one refresh runs at a time with at most one queued behind it.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Mapping, Optional

from .records import Record
from .remote import ChangeEvent, RemoteError

if TYPE_CHECKING:
    from .store import EntityStore

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "temp-"


class MutationState(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    # update/delete that the remote refused; local state is kept
    FAILED = "failed"


class RemoteWriteSkipped(RemoteError):
    """Update/delete targeted a record whose create is still pending."""

    def __init__(self, record_id: str):
        super().__init__(f"record {record_id} has no canonical id yet")


@dataclass(frozen=True)
class SyncResult:
    table: str
    record_id: str
    state: MutationState
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.state == MutationState.CONFIRMED


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4()}"


def is_temp_id(record_id: Optional[str]) -> bool:
    return bool(record_id) and record_id.startswith(TEMP_ID_PREFIX)


class SyncCoordinator:
    def __init__(self, store: "EntityStore", remote):
        self.store = store
        self.remote = remote
        self._inflight: set[asyncio.Task] = set()
        # collection -> {temp id: optimistic record}
        self._pending_creates: dict[str, dict[str, Record]] = {}
        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_queued = False
        self._subscription = None

    # -- creates -------------------------------------------------------

    async def create(self, collection: str, record: Record) -> Record:
        table, record_cls = self.store.binding(collection)
        temp_id = new_temp_id()
        optimistic = record.merged({"id": temp_id})
        self._pending_creates.setdefault(collection, {})[temp_id] = optimistic
        self.store._replace(collection, lambda items: [*items, optimistic])

        try:
            row = await self.remote.insert(table, optimistic.to_row(include_server_fields=False))
        except RemoteError:
            self._pending_creates[collection].pop(temp_id, None)
            self.store._replace(collection, lambda items: [r for r in items if r.id != temp_id])
            logger.exception("Create in %s rolled back", table)
            raise

        self._pending_creates[collection].pop(temp_id, None)
        canonical = record_cls.from_row(row)
        self.store._replace(collection, lambda items: _swap_in(items, temp_id, canonical))
        logger.debug("Create in %s confirmed as %s", table, canonical.id)
        return canonical

    def pending_creates(self, collection: str) -> list[Record]:
        return list(self._pending_creates.get(collection, {}).values())

    # -- updates / deletes --------------------------------------------

    def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> asyncio.Task:
        table, record_cls = self.store.binding(collection)
        changes = record_cls.known_changes(changes)
        self.store._replace(
            collection,
            lambda items: [r.merged(changes) if r.id == record_id else r for r in items],
        )
        fields = record_cls.row_changes(changes)
        return self.track(self._push_update(table, record_id, fields))

    def delete(self, collection: str, record_id: str) -> asyncio.Task:
        table, _ = self.store.binding(collection)
        self.store._replace(collection, lambda items: [r for r in items if r.id != record_id])
        return self.track(self._push_delete(table, record_id))

    async def _push_update(self, table: str, record_id: str, fields: dict) -> SyncResult:
        if is_temp_id(record_id):
            # The canonical id is not known yet; the next refresh brings the row back.
            logger.warning("Update of unconfirmed %s/%s not sent", table, record_id)
            return SyncResult(table, record_id, MutationState.FAILED, RemoteWriteSkipped(record_id))
        if not fields:
            return SyncResult(table, record_id, MutationState.CONFIRMED)
        try:
            await self.remote.update(table, record_id, fields)
        except RemoteError as exc:
            logger.error("Update of %s/%s failed, local change kept: %s", table, record_id, exc)
            return SyncResult(table, record_id, MutationState.FAILED, exc)
        return SyncResult(table, record_id, MutationState.CONFIRMED)

    async def _push_delete(self, table: str, record_id: str) -> SyncResult:
        if is_temp_id(record_id):
            logger.warning("Delete of unconfirmed %s/%s not sent", table, record_id)
            return SyncResult(table, record_id, MutationState.FAILED, RemoteWriteSkipped(record_id))
        try:
            await self.remote.delete(table, record_id)
        except RemoteError as exc:
            logger.error("Delete of %s/%s failed, local removal kept: %s", table, record_id, exc)
            return SyncResult(table, record_id, MutationState.FAILED, exc)
        return SyncResult(table, record_id, MutationState.CONFIRMED)

    # -- background tasks ---------------------------------------------

    def track(self, coro: Awaitable) -> asyncio.Task:
        """Run `coro` in the background; drain() waits for it."""
        task = asyncio.get_running_loop().create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background write crashed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for every in-flight write, including writes they start."""
        while True:
            pending = [t for t in self._inflight if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # -- inbound changes ----------------------------------------------

    def handle_change_event(self, event: ChangeEvent) -> asyncio.Task:
        logger.debug("Change event %s on %s", event.event_type, event.table)
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_queued = True
            return self._refresh_task
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())
        return self._refresh_task

    def _on_change(self, event: ChangeEvent) -> None:
        # returns None so the poller never blocks on a refresh
        self.handle_change_event(event)

    async def _refresh_loop(self) -> None:
        while True:
            self._refresh_queued = False
            await self.store.fetch_initial_data()
            if not self._refresh_queued:
                return

    async def wait_for_refresh(self) -> None:
        while self._refresh_task is not None and not self._refresh_task.done():
            await self._refresh_task

    async def start_realtime(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = await self.remote.subscribe(self._on_change)
        logger.info("Realtime subscription started")

    async def stop_realtime(self) -> None:
        if self._subscription is None:
            return
        subscription, self._subscription = self._subscription, None
        await subscription.close()
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
        logger.info("Realtime subscription closed")

    @property
    def realtime_active(self) -> bool:
        return self._subscription is not None


def _swap_in(items: list, temp_id: str, canonical: Record) -> list:
    """
    Replace the temporary entry with the canonical record.

    A refresh may already have brought the canonical row in, or dropped the
    temporary one; either way exactly one entry with the canonical id remains.
    """
    out = []
    placed = False
    for item in items:
        if item.id == temp_id or item.id == canonical.id:
            if not placed:
                out.append(canonical)
                placed = True
            continue
        out.append(item)
    if not placed:
        out.append(canonical)
    return out
