# sshdeck/stores/sessions.py

import asyncio
from dataclasses import replace
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from gi.repository import GObject

from ..gateways.actions import ConnectionActionGateway
from ..gateways.persistence import PersistenceGateway
from ..sessions.mapper import (
    MapperContext,
    forward_to_view,
    group_patch_to_input,
    group_to_input,
    group_to_view,
    session_patch_to_input,
    session_to_input,
    session_to_view,
)
from ..sessions.models import (
    ConnectionStatus,
    ForwardView,
    GroupView,
    SessionCreateInput,
    SessionView,
    ViewMode,
)
from ..sessions.validation import (
    validate_group_name,
    validate_session_changes,
    validate_session_input,
)
from ..utils.exceptions import NegotiationError, ValidationError
from ..utils.logger import log_store_event
from ..utils.translation_utils import _
from .base import EntityStore, find, patch, upsert, without


def _carry_runtime(fresh: SessionView, prior: SessionView) -> SessionView:
    """Put the in-memory runtime fields of ``prior`` onto a freshly mapped row."""
    return replace(
        fresh,
        status=prior.status,
        error=prior.error,
        rows=prior.rows,
        cols=prior.cols,
    )


def _carry_forward_flags(
    fresh: Tuple[ForwardView, ...], prior: Tuple[ForwardView, ...]
) -> Tuple[ForwardView, ...]:
    active = {f.id: f.active for f in prior}
    return tuple(replace(f, active=active.get(f.id, False)) for f in fresh)


class SessionStore(EntityStore):
    """
    Connection profiles and groups, plus the focused profile and UI mode.

    Create and update are call-then-apply: nothing changes locally until the
    authority has answered. Connect is optimistic and records failures in
    the row instead of raising. Removal detaches the row first and never
    raises.
    """

    __gsignals__ = {
        "sessions-changed": (GObject.SignalFlags.RUN_FIRST, None, ()),
        "session-updated": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
        "session-removed": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
        "groups-changed": (GObject.SignalFlags.RUN_FIRST, None, ()),
        "active-changed": (GObject.SignalFlags.RUN_FIRST, None, (object,)),
        "view-changed": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
    }

    def __init__(self, gateway: PersistenceGateway, actions: ConnectionActionGateway):
        super().__init__("sshdeck.stores.sessions")
        self.gateway = gateway
        self.actions = actions
        self._sessions: Tuple[SessionView, ...] = ()
        self._groups: Tuple[GroupView, ...] = ()
        self._active_session_id: Optional[str] = None
        self._view_mode = ViewMode.DASHBOARD
        self._initialized = False
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def sessions(self) -> Tuple[SessionView, ...]:
        return self._sessions

    @property
    def groups(self) -> Tuple[GroupView, ...]:
        return self._groups

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    @property
    def active_session(self) -> Optional[SessionView]:
        if self._active_session_id is None:
            return None
        return find(self._sessions, self._active_session_id)

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def context(self) -> MapperContext:
        return MapperContext.from_groups(self._groups)

    def get_session(self, session_id: str) -> Optional[SessionView]:
        return find(self._sessions, session_id)

    def get_group(self, group_id: str) -> Optional[GroupView]:
        return find(self._groups, group_id)

    def sessions_in_group(self, group_name: Optional[str]) -> Tuple[SessionView, ...]:
        return tuple(s for s in self._sessions if s.group == group_name)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _fetch_snapshot(self) -> Tuple[Tuple[GroupView, ...], List[tuple]]:
        groups = tuple(group_to_view(r) for r in await self.gateway.list_groups())
        records = await self.gateway.list_sessions()
        forward_lists = await asyncio.gather(
            *(self.gateway.list_forwards(r["id"]) for r in records)
        )
        return groups, list(zip(records, forward_lists))

    def _map_snapshot(self, groups, rows, since: int) -> Tuple[SessionView, ...]:
        """Install the fetched groups, then map sessions against them."""
        self._groups = self._reconcile("group", groups, self._groups, since)
        context = self.context
        return tuple(
            session_to_view(record, context, [forward_to_view(f) for f in forwards])
            for record, forwards in rows
        )

    async def init(self) -> None:
        """Load groups, sessions and their rules once; later calls do nothing."""
        async with self._init_lock:
            if self._initialized:
                self.logger.debug("Session store already initialized")
                return
            async with self._fetching() as since:
                groups, rows = await self._fetch_snapshot()
                sessions = self._map_snapshot(groups, rows, since)
                self._sessions = self._reconcile("session", sessions, self._sessions, since)
            self._initialized = True

        self.logger.info(
            f"Loaded {len(self._sessions)} sessions and {len(self._groups)} groups"
        )
        self.emit("groups-changed")
        self.emit("sessions-changed")

    async def refresh(self) -> bool:
        """
        Re-fetch everything and keep the runtime state of known rows.

        Rows added or removed locally while the fetch was in flight keep
        their local state. Fails soft: on any error the current collections
        stay as they are, ``sync-error`` is emitted and False is returned.
        """
        async with self._fetching() as since:
            try:
                groups, rows = await self._fetch_snapshot()
            except Exception as e:
                self._report_sync_error("refresh sessions", e)
                return False

            prior = {s.id: s for s in self._sessions}
            merged = []
            for fresh in self._map_snapshot(groups, rows, since):
                old = prior.get(fresh.id)
                if old is not None:
                    fresh = replace(
                        _carry_runtime(fresh, old),
                        forwards=_carry_forward_flags(fresh.forwards, old.forwards),
                    )
                merged.append(fresh)

            self._sessions = self._reconcile("session", tuple(merged), self._sessions, since)
            self._initialized = True

        self.logger.debug(
            f"Refreshed {len(self._sessions)} sessions and {len(self._groups)} groups"
        )
        self.emit("groups-changed")
        self.emit("sessions-changed")

        if self._active_session_id and self.get_session(self._active_session_id) is None:
            self.logger.info(
                f"Active session '{self._active_session_id}' no longer exists, clearing"
            )
            self.set_active(None)
        return True

    # ------------------------------------------------------------------
    # Session CRUD
    # ------------------------------------------------------------------

    def _check_group_name(self, group_name: Optional[str]) -> None:
        if group_name and self.context.group_id(group_name) is None:
            raise ValidationError(
                "group", _("Group '{}' does not exist").format(group_name), group_name
            )

    async def add(
        self, data: SessionCreateInput, group_id: Optional[str] = None
    ) -> SessionView:
        """Create a session on the authority and append the canonical row."""
        validate_session_input(data)
        if group_id is None:
            self._check_group_name(data.group)

        record = await self.gateway.create_session(
            session_to_input(data, self.context, group_id)
        )
        view = session_to_view(record, self.context)
        self._sessions = upsert(self._sessions, view)
        self._mark("session", view.id, True)

        log_store_event("created", "session", view.id, view.name)
        self.emit("sessions-changed")
        return view

    async def update(
        self, session_id: str, changes: Mapping[str, Any]
    ) -> Optional[SessionView]:
        """
        Send the persisted part of ``changes`` and apply the authority's answer.

        The local row is not touched before the call returns, so a failure
        leaves it exactly as it was. Runtime fields are taken from the row
        as it stands when the answer is applied.
        """
        async with self._locks.hold(("update", session_id)):
            if self.get_session(session_id) is None:
                self.logger.warning(f"Update for unknown session '{session_id}' ignored")
                return None

            validate_session_changes(changes)
            if "group" in changes:
                self._check_group_name(changes["group"])
            data = session_patch_to_input(changes, self.context)
            if not data:
                self.logger.debug(f"No persisted fields in update of '{session_id}'")
                return self.get_session(session_id)

            record = await self.gateway.update_session(session_id, data)

            latest = self.get_session(session_id)
            if latest is None:
                self.logger.info(f"Session '{session_id}' removed during update")
                return None
            fresh = session_to_view(record, self.context, latest.forwards)
            merged = _carry_runtime(fresh, latest)
            self._sessions = upsert(self._sessions, merged)
            self._mark("session", session_id, True)

        log_store_event("updated", "session", session_id, ", ".join(sorted(data)))
        self.emit("session-updated", session_id)
        self.emit("sessions-changed")
        return merged

    async def remove(self, session_id: str) -> None:
        """Detach the session locally, then delete it on the authority."""
        if self.get_session(session_id) is None:
            self.logger.warning(f"Remove for unknown session '{session_id}' ignored")
            return

        self._sessions = without(self._sessions, session_id)
        self._mark("session", session_id, False)
        log_store_event("removed", "session", session_id)
        self.emit("sessions-changed")
        self.emit("session-removed", session_id)
        if self._active_session_id == session_id:
            self.set_active(None)

        await self._delete_remote("session", session_id, self.gateway.delete_session)

    def _drop_local(self, kind: str, item_id: str) -> None:
        if kind == "group":
            self._detach_group(item_id)
        elif self.get_session(item_id) is not None:
            self._sessions = without(self._sessions, item_id)
            self._mark("session", item_id, False)
            self.emit("sessions-changed")
            self.emit("session-removed", item_id)

    # ------------------------------------------------------------------
    # Focus and mode
    # ------------------------------------------------------------------

    def set_active(self, session_id: Optional[str]) -> None:
        """Focus a session (terminal mode) or clear focus (dashboard mode)."""
        self._active_session_id = session_id
        self.emit("active-changed", session_id)
        self.set_view(ViewMode.TERMINAL if session_id else ViewMode.DASHBOARD)

    def set_view(self, mode: ViewMode) -> None:
        mode = ViewMode(mode)
        if mode is not self._view_mode:
            self._view_mode = mode
            self.emit("view-changed", mode.value)

    # ------------------------------------------------------------------
    # Runtime state
    # ------------------------------------------------------------------

    def _set_runtime(self, session_id: str, **fields: Any) -> Optional[SessionView]:
        self._sessions, updated = patch(self._sessions, session_id, **fields)
        if updated is not None:
            self.emit("session-updated", session_id)
            self.emit("sessions-changed")
        return updated

    async def connect_session(self, session_id: str, secret: Optional[str] = None) -> bool:
        """
        Connect a session: Connecting right away, then Live or Failed.

        A refused connection is recorded in ``status``/``error`` and reported
        through the return value, never raised.
        """
        if self.get_session(session_id) is None:
            self.logger.warning(f"Connect for unknown session '{session_id}' ignored")
            return False

        async with self._locks.hold(("link", session_id)):
            if self._set_runtime(
                session_id, status=ConnectionStatus.CONNECTING, error=None
            ) is None:
                return False
            try:
                await self.actions.connect(session_id, secret)
            except NegotiationError as e:
                self._set_runtime(session_id, status=ConnectionStatus.FAILED, error=e.reason)
                log_store_event("connection failed", "session", session_id, e.reason)
                return False

            if self._set_runtime(session_id, status=ConnectionStatus.LIVE, error=None) is None:
                return False
        log_store_event("connected", "session", session_id)
        self.set_active(session_id)
        return True

    async def disconnect_session(self, session_id: str) -> None:
        """Disconnect; the row ends Idle even when the service call fails."""
        row = self.get_session(session_id)
        if row is None:
            self.logger.warning(f"Disconnect for unknown session '{session_id}' ignored")
            return
        if not row.is_live:
            self.logger.debug(f"Session '{session_id}' is {row.status.value}, disconnecting anyway")

        async with self._locks.hold(("link", session_id)):
            try:
                await self.actions.disconnect(session_id)
            except NegotiationError as e:
                self.logger.warning(f"Disconnect of '{session_id}' failed: {e.reason}")
            self._set_runtime(session_id, status=ConnectionStatus.IDLE, error=None)
        log_store_event("disconnected", "session", session_id)

    def resize_terminal(self, session_id: str, rows: int, cols: int) -> Optional[SessionView]:
        if rows < 1 or cols < 1:
            raise ValidationError(
                "rows" if rows < 1 else "cols",
                _("Terminal size must be positive"),
                (rows, cols),
            )
        return self._set_runtime(session_id, rows=int(rows), cols=int(cols))

    def sync_forwards(self, session_id: str, forwards: Sequence[ForwardView]) -> None:
        """Replace the resolved forwarding rules shown on a session."""
        self._set_runtime(session_id, forwards=tuple(forwards))

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def add_group(self, name: str, color: Optional[str] = None) -> GroupView:
        validate_group_name(name)
        record = await self.gateway.create_group(group_to_input(name.strip(), color))
        view = group_to_view(record)
        self._groups = upsert(self._groups, view)
        self._mark("group", view.id, True)
        log_store_event("created", "group", view.id, view.name)
        self.emit("groups-changed")
        return view

    async def update_group(
        self, group_id: str, changes: Mapping[str, Any]
    ) -> Optional[GroupView]:
        """Rename or recolor a group; renamed groups re-label their sessions."""
        async with self._locks.hold(("update-group", group_id)):
            if self.get_group(group_id) is None:
                self.logger.warning(f"Update for unknown group '{group_id}' ignored")
                return None
            if "name" in changes:
                validate_group_name(changes["name"])
            data = group_patch_to_input(changes)
            if not data:
                return self.get_group(group_id)

            record = await self.gateway.update_group(group_id, data)

            latest = self.get_group(group_id)
            if latest is None:
                self.logger.info(f"Group '{group_id}' removed during update")
                return None
            view = group_to_view(record)
            self._groups = upsert(self._groups, view)
            self._mark("group", group_id, True)
            relabelled = False
            if view.name != latest.name:
                self._sessions = tuple(
                    replace(s, group=view.name) if s.group == latest.name else s
                    for s in self._sessions
                )
                relabelled = True

        log_store_event("updated", "group", group_id)
        self.emit("groups-changed")
        if relabelled:
            self.emit("sessions-changed")
        return view

    def _detach_group(self, group_id: str) -> Optional[GroupView]:
        """Drop a group locally and clear it from every session that showed it."""
        group = self.get_group(group_id)
        if group is None:
            return None
        self._groups = without(self._groups, group_id)
        self._mark("group", group_id, False)
        self._sessions = tuple(
            replace(s, group=None) if s.group == group.name else s
            for s in self._sessions
        )
        self.emit("groups-changed")
        self.emit("sessions-changed")
        return group

    async def remove_group(self, group_id: str) -> None:
        """Detach the group (and its label on sessions), then delete it remotely."""
        group = self._detach_group(group_id)
        if group is None:
            self.logger.warning(f"Remove for unknown group '{group_id}' ignored")
            return
        log_store_event("removed", "group", group_id, group.name)
        await self._delete_remote("group", group_id, self.gateway.delete_group)
