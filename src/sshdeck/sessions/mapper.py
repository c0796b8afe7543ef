# sshdeck/sessions/mapper.py
"""
Translation between wire records and view models.

Wire records are plain dicts shaped like the persistence authority's rows
(snake-case keys, foreign keys as ids). View models are the dataclasses in
``models``. Everything here is a pure function: no I/O, no module state.
Cross-entity lookups come from an explicit ``MapperContext``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from ..settings.config import CacheDefaults
from .models import (
    SESSION_RUNTIME_FIELDS,
    AuthMethod,
    ForwardCreateInput,
    ForwardDirection,
    ForwardView,
    GroupView,
    KeyAlgorithm,
    KeyCreateInput,
    KeyImportInput,
    KeyView,
    SessionCreateInput,
    SessionView,
)

Record = Dict[str, Any]

# Public key text prefixes, in the order they are checked
_KEY_PREFIXES = (
    ("ssh-ed25519", KeyAlgorithm.ED25519),
    ("ecdsa-sha2-", KeyAlgorithm.ECDSA),
    ("ssh-rsa", KeyAlgorithm.RSA),
)


@dataclass(frozen=True)
class MapperContext:
    """Cross-entity lookups needed to denormalize a record."""

    group_names: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_groups(cls, groups: Iterable[GroupView]) -> "MapperContext":
        return cls(group_names={g.id: g.name for g in groups})

    def group_name(self, group_id: Optional[str]) -> Optional[str]:
        if not group_id:
            return None
        return self.group_names.get(group_id)

    def group_id(self, group_name: Optional[str]) -> Optional[str]:
        if not group_name:
            return None
        for gid, name in self.group_names.items():
            if name == group_name:
                return gid
        return None


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def session_to_view(
    record: Mapping[str, Any],
    context: MapperContext,
    forwards: Sequence[ForwardView] = (),
) -> SessionView:
    """Map a persisted session with runtime fields at their defaults."""
    return SessionView(
        id=record["id"],
        name=record["name"],
        group=context.group_name(record.get("group_id")),
        host=record["host"],
        port=int(record["port"]),
        username=record["username"],
        auth_method=AuthMethod(record["auth_method"]),
        key_id=record.get("key_id"),
        forwards=tuple(forwards),
    )


def session_to_input(
    data: SessionCreateInput,
    context: MapperContext,
    group_id: Optional[str] = None,
) -> Record:
    """Build the create payload; an explicit group_id wins over the group name."""
    return {
        "name": data.name,
        "group_id": group_id or context.group_id(data.group),
        "host": data.host,
        "port": data.port,
        "username": data.username,
        "auth_method": _enum_value(data.auth_method),
        "key_id": data.key_id,
    }


def session_patch_to_input(changes: Mapping[str, Any], context: MapperContext) -> Record:
    """
    Map a partial view (field name -> new value) to a partial update payload.

    Runtime-only fields and unknown names are dropped; ``group`` is resolved
    from a display name to its id.
    """
    patch: Record = {}
    for name, value in changes.items():
        if name in SESSION_RUNTIME_FIELDS:
            continue
        if name == "group":
            patch["group_id"] = context.group_id(value)
        elif name == "auth_method":
            patch["auth_method"] = _enum_value(value)
        elif name == "port":
            patch["port"] = int(value)
        elif name in ("name", "host", "username", "key_id"):
            patch[name] = value
    return patch


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


def group_to_view(record: Mapping[str, Any]) -> GroupView:
    return GroupView(id=record["id"], name=record["name"], color=record.get("color"))


def group_to_input(name: str, color: Optional[str] = None) -> Record:
    return {"name": name, "color": color}


def group_patch_to_input(changes: Mapping[str, Any]) -> Record:
    return {k: v for k, v in changes.items() if k in ("name", "color")}


# ---------------------------------------------------------------------------
# SSH keys
# ---------------------------------------------------------------------------


def detect_key_algorithm(public_key: str) -> KeyAlgorithm:
    """Guess the algorithm from an OpenSSH public key line (rsa when unknown)."""
    text = (public_key or "").strip()
    for prefix, algorithm in _KEY_PREFIXES:
        if text.startswith(prefix):
            return algorithm
    return KeyAlgorithm.RSA


def key_to_view(record: Mapping[str, Any]) -> KeyView:
    return KeyView(
        id=record["id"],
        name=record["name"],
        algorithm=KeyAlgorithm(record["type"]),
        public_key=record["public_key"],
        private_key_path=record.get("private_key_path"),
        fingerprint=record.get("fingerprint", ""),
        has_passphrase=bool(record.get("has_passphrase", False)),
        created_at=datetime.fromtimestamp(record.get("created_at", 0), tz=timezone.utc),
    )


def key_to_input(data: KeyCreateInput, public_key: str, fingerprint: str) -> Record:
    return {
        "name": data.name,
        "type": _enum_value(data.algorithm),
        "public_key": public_key,
        "private_key_path": None,
        "fingerprint": fingerprint,
        "has_passphrase": bool(data.passphrase),
    }


def imported_key_to_input(
    data: KeyImportInput, fingerprint: str, has_passphrase: bool
) -> Record:
    return {
        "name": data.name,
        "type": detect_key_algorithm(data.public_key).value,
        "public_key": data.public_key,
        "private_key_path": data.private_key_path,
        "fingerprint": fingerprint,
        "has_passphrase": bool(has_passphrase),
    }


# ---------------------------------------------------------------------------
# Port forwards
# ---------------------------------------------------------------------------


def forward_to_view(record: Mapping[str, Any]) -> ForwardView:
    """Map a persisted rule; ``active`` always starts False."""
    remote_port = record.get("remote_port")
    return ForwardView(
        id=record["id"],
        session_id=record["session_id"],
        name=record["name"],
        direction=ForwardDirection(record["type"]),
        local_host=record.get("local_host") or CacheDefaults.FORWARD_BIND_HOST,
        local_port=int(record["local_port"]),
        remote_host=record.get("remote_host"),
        remote_port=int(remote_port) if remote_port is not None else None,
    )


def forward_to_input(data: ForwardCreateInput) -> Record:
    direction = ForwardDirection(_enum_value(data.direction))
    dynamic = direction is ForwardDirection.DYNAMIC
    return {
        "session_id": data.session_id,
        "name": data.name,
        "type": direction.value,
        "local_host": data.local_host,
        "local_port": data.local_port,
        "remote_host": None if dynamic else data.remote_host,
        "remote_port": None if dynamic else data.remote_port,
    }


def forward_patch_to_input(changes: Mapping[str, Any]) -> Record:
    patch: Record = {}
    for name, value in changes.items():
        if name == "direction":
            patch["type"] = _enum_value(value)
        elif name in ("name", "local_host", "local_port", "remote_host", "remote_port"):
            patch[name] = value
    if patch.get("type") == ForwardDirection.DYNAMIC.value:
        patch["remote_host"] = None
        patch["remote_port"] = None
    return patch


def forward_to_action_config(view: ForwardView) -> Record:
    """Payload handed to the negotiation service to set up a tunnel."""
    return {
        "id": view.id,
        "session_id": view.session_id,
        "name": view.name,
        "type": view.direction.value,
        "local_host": view.local_host,
        "local_port": view.local_port,
        "remote_host": view.remote_host,
        "remote_port": view.remote_port,
    }
