# sshdeck/stores/forwards.py

from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Tuple

from gi.repository import GObject

from ..gateways.actions import ConnectionActionGateway
from ..gateways.persistence import PersistenceGateway
from ..sessions.mapper import (
    forward_patch_to_input,
    forward_to_action_config,
    forward_to_input,
    forward_to_view,
)
from ..sessions.models import ForwardCreateInput, ForwardView
from ..sessions.validation import validate_forward_changes, validate_forward_input
from ..utils.exceptions import NegotiationError, ValidationError
from ..utils.logger import log_store_event
from ..utils.translation_utils import _
from .base import EntityStore, find, patch, upsert, without
from .sessions import SessionStore


class ForwardStore(EntityStore):
    """
    Port forwarding rules of every known session.

    ``active`` is runtime state owned by this store: it starts False for
    every loaded rule, is flipped optimistically by ``toggle`` and is kept
    across reloads for ids that are still present.
    """

    __gsignals__ = {
        "forwards-changed": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
    }

    def __init__(
        self,
        gateway: PersistenceGateway,
        actions: ConnectionActionGateway,
        sessions: SessionStore,
    ):
        super().__init__("sshdeck.stores.forwards")
        self.gateway = gateway
        self.actions = actions
        self.sessions = sessions
        self._forwards: Tuple[ForwardView, ...] = ()

    @property
    def forwards(self) -> Tuple[ForwardView, ...]:
        return self._forwards

    def get_forward(self, forward_id: str) -> Optional[ForwardView]:
        return find(self._forwards, forward_id)

    def for_session(self, session_id: str) -> Tuple[ForwardView, ...]:
        return tuple(f for f in self._forwards if f.session_id == session_id)

    def _notify(self, session_ids: Iterable[str]) -> None:
        for session_id in sorted(set(session_ids)):
            self.emit("forwards-changed", session_id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, session_id: Optional[str] = None) -> None:
        """Fetch all rules, or only those of ``session_id``, keeping ``active``."""
        async with self._fetching() as since:
            records = await self.gateway.list_forwards(session_id)
            active = {f.id: f.active for f in self._forwards}
            fresh = tuple(
                replace(view, active=active.get(view.id, False))
                for view in (forward_to_view(r) for r in records)
            )

            if session_id is None:
                touched = {f.session_id for f in self._forwards} | {f.session_id for f in fresh}
                self._forwards = self._reconcile("forward", fresh, self._forwards, since)
            else:
                touched = {session_id}
                kept = tuple(f for f in self._forwards if f.session_id != session_id)
                current = self.for_session(session_id)
                self._forwards = kept + self._reconcile("forward", fresh, current, since)

        self.logger.debug(
            f"Loaded {len(fresh)} port forwards"
            + (f" for session '{session_id}'" if session_id else "")
        )
        self._notify(touched)

    async def refresh(self, session_id: Optional[str] = None) -> bool:
        try:
            await self.load(session_id)
        except Exception as e:
            self._report_sync_error("refresh port forwards", e)
            return False
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _require_session(self, session_id: str) -> None:
        if self.sessions.get_session(session_id) is None:
            raise ValidationError(
                "session_id", _("Session '{}' does not exist").format(session_id), session_id
            )

    async def add(self, data: ForwardCreateInput) -> ForwardView:
        """
        Persist a new rule, insert it inactive, then ask the negotiation
        service to set it up. The service call is best effort: its failure
        is logged and the rule stays.
        """
        self._require_session(data.session_id)
        validate_forward_input(data)

        record = await self.gateway.create_forward(forward_to_input(data))
        view = forward_to_view(record)

        if self.sessions.get_session(view.session_id) is None:
            self.logger.warning(
                f"Session '{view.session_id}' was removed while adding rule '{view.id}'"
            )
            await self._delete_remote("forward", view.id, self.gateway.delete_forward)
            return view

        self._forwards = upsert(self._forwards, view)
        self._mark("forward", view.id, True)
        log_store_event("created", "port forward", view.id, view.name)
        self._notify([view.session_id])

        try:
            await self.actions.add_forward(forward_to_action_config(view))
        except NegotiationError as e:
            self.logger.warning(f"Port forward '{view.id}' saved but not set up: {e.reason}")
        return view

    async def update(self, forward_id: str, changes: Mapping[str, Any]) -> Optional[ForwardView]:
        async with self._locks.hold(("update", forward_id)):
            current = self.get_forward(forward_id)
            if current is None:
                self.logger.warning(f"Update for unknown port forward '{forward_id}' ignored")
                return None
            validate_forward_changes(changes, current)
            data = forward_patch_to_input(changes)
            if not data:
                return self.get_forward(forward_id)

            record = await self.gateway.update_forward(forward_id, data)

            latest = self.get_forward(forward_id)
            if latest is None:
                self.logger.info(f"Port forward '{forward_id}' removed during update")
                return None
            view = replace(forward_to_view(record), active=latest.active)
            self._forwards = upsert(self._forwards, view)
            self._mark("forward", forward_id, True)

        log_store_event("updated", "port forward", forward_id, ", ".join(sorted(data)))
        self._notify({latest.session_id, view.session_id})
        return view

    async def remove(self, forward_id: str) -> None:
        """Drop the rule locally, tear the tunnel down, then delete the record."""
        rule = self.get_forward(forward_id)
        if rule is None:
            self.logger.warning(f"Remove for unknown port forward '{forward_id}' ignored")
            return

        self._forwards = without(self._forwards, forward_id)
        self._mark("forward", forward_id, False)
        log_store_event("removed", "port forward", forward_id)
        self._notify([rule.session_id])

        try:
            await self.actions.remove_forward(forward_id)
        except NegotiationError as e:
            self.logger.warning(f"Tearing down port forward '{forward_id}' failed: {e.reason}")

        await self._delete_remote("forward", forward_id, self.gateway.delete_forward)

    async def toggle(self, forward_id: str) -> Optional[bool]:
        """
        Flip ``active`` right away and confirm with the negotiation service.

        On failure the flag goes back to the value it had before this call
        and the NegotiationError is raised. Returns the new flag, or None
        for an unknown rule.
        """
        async with self._locks.hold(("toggle", forward_id)):
            rule = self.get_forward(forward_id)
            if rule is None:
                self.logger.warning(f"Toggle of unknown port forward '{forward_id}' ignored")
                return None
            previous = rule.active
            wanted = not previous

            self._forwards, _updated = patch(self._forwards, forward_id, active=wanted)
            self._notify([rule.session_id])
            try:
                await self.actions.toggle_forward(forward_id, wanted)
            except NegotiationError:
                self._forwards, reverted = patch(self._forwards, forward_id, active=previous)
                if reverted is not None:
                    self._notify([rule.session_id])
                raise

        log_store_event("toggled", "port forward", forward_id, "on" if wanted else "off")
        return wanted

    def drop_session(self, session_id: str) -> None:
        """Forget the rules of a removed session; the authority deletes them with it."""
        dropped = self.for_session(session_id)
        if not dropped:
            return
        self._forwards = tuple(f for f in self._forwards if f.session_id != session_id)
        for rule in dropped:
            self._mark("forward", rule.id, False)
        self.logger.debug(f"Dropped {len(dropped)} port forwards of session '{session_id}'")
        self._notify([session_id])

    def _drop_local(self, kind: str, item_id: str) -> None:
        rule = self.get_forward(item_id)
        if rule is not None:
            self._forwards = without(self._forwards, item_id)
            self._mark("forward", item_id, False)
            self._notify([rule.session_id])
