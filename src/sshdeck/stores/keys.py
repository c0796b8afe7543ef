# sshdeck/stores/keys.py

from typing import Optional, Tuple

from gi.repository import GObject

from ..gateways.actions import ConnectionActionGateway
from ..gateways.persistence import PersistenceGateway
from ..sessions.mapper import imported_key_to_input, key_to_input, key_to_view
from ..sessions.models import KeyCreateInput, KeyImportInput, KeyView
from ..sessions.validation import validate_key_import, validate_key_input, validate_key_name
from ..utils.logger import log_store_event
from .base import EntityStore, find, upsert, without


class KeyStore(EntityStore):
    """Credential records and the key currently selected in the key manager."""

    __gsignals__ = {
        "keys-changed": (GObject.SignalFlags.RUN_FIRST, None, ()),
        "selection-changed": (GObject.SignalFlags.RUN_FIRST, None, (object,)),
    }

    def __init__(self, gateway: PersistenceGateway, actions: ConnectionActionGateway):
        super().__init__("sshdeck.stores.keys")
        self.gateway = gateway
        self.actions = actions
        self._keys: Tuple[KeyView, ...] = ()
        self._selected_key_id: Optional[str] = None

    @property
    def keys(self) -> Tuple[KeyView, ...]:
        return self._keys

    @property
    def selected_key_id(self) -> Optional[str]:
        return self._selected_key_id

    def get_key(self, key_id: str) -> Optional[KeyView]:
        return find(self._keys, key_id)

    async def load(self) -> None:
        async with self._fetching() as since:
            records = await self.gateway.list_keys()
            fresh = tuple(key_to_view(r) for r in records)
            self._keys = self._reconcile("key", fresh, self._keys, since)
        self.logger.info(f"Loaded {len(self._keys)} SSH keys")
        self.emit("keys-changed")
        self._clear_stale_selection()

    async def refresh(self) -> bool:
        try:
            await self.load()
        except Exception as e:
            self._report_sync_error("refresh keys", e)
            return False
        return True

    def _clear_stale_selection(self) -> None:
        if self._selected_key_id and self.get_key(self._selected_key_id) is None:
            self.set_selected(None)

    async def add(self, data: KeyCreateInput) -> KeyView:
        """
        Generate a key pair, fingerprint it and persist the record.

        The three calls run in sequence and the row is inserted only after
        the last one succeeds; the first failure propagates unchanged.
        """
        validate_key_input(data)
        algorithm = getattr(data.algorithm, "value", data.algorithm)

        public_key = await self.actions.generate_key(data.name, algorithm, data.passphrase)
        fingerprint = await self.actions.fingerprint(public_key)
        record = await self.gateway.create_key(key_to_input(data, public_key, fingerprint))

        view = key_to_view(record)
        self._keys = upsert(self._keys, view)
        self._mark("key", view.id, True)
        log_store_event("created", "key", view.id, view.algorithm.value)
        self.emit("keys-changed")
        return view

    async def import_key(
        self, data: KeyImportInput, fingerprint: str, has_passphrase: bool = False
    ) -> KeyView:
        """Hand an existing private key to the key service, then persist its record."""
        validate_key_import(data)
        await self.actions.import_key(data.private_key_path, data.name)
        record = await self.gateway.create_key(
            imported_key_to_input(data, fingerprint, has_passphrase)
        )

        view = key_to_view(record)
        self._keys = upsert(self._keys, view)
        self._mark("key", view.id, True)
        log_store_event("imported", "key", view.id, data.private_key_path)
        self.emit("keys-changed")
        return view

    async def rename(self, key_id: str, name: str) -> Optional[KeyView]:
        async with self._locks.hold(("update", key_id)):
            if self.get_key(key_id) is None:
                self.logger.warning(f"Rename of unknown key '{key_id}' ignored")
                return None
            validate_key_name(name)
            record = await self.gateway.update_key(key_id, {"name": name.strip()})
            if self.get_key(key_id) is None:
                return None
            view = key_to_view(record)
            self._keys = upsert(self._keys, view)
            self._mark("key", key_id, True)

        log_store_event("renamed", "key", key_id, view.name)
        self.emit("keys-changed")
        return view

    async def remove(self, key_id: str) -> None:
        if self.get_key(key_id) is None:
            self.logger.warning(f"Remove for unknown key '{key_id}' ignored")
            return

        self._keys = without(self._keys, key_id)
        self._mark("key", key_id, False)
        log_store_event("removed", "key", key_id)
        self.emit("keys-changed")
        if self._selected_key_id == key_id:
            self.set_selected(None)

        await self._delete_remote("key", key_id, self.gateway.delete_key)

    def _drop_local(self, kind: str, item_id: str) -> None:
        if self.get_key(item_id) is not None:
            self._keys = without(self._keys, item_id)
            self._mark("key", item_id, False)
            self.emit("keys-changed")
            self._clear_stale_selection()

    def set_selected(self, key_id: Optional[str]) -> None:
        if key_id == self._selected_key_id:
            return
        self._selected_key_id = key_id
        self.emit("selection-changed", key_id)
