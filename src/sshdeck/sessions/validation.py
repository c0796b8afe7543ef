# sshdeck/sessions/validation.py

from typing import Any, Mapping, Optional

from ..utils.exceptions import ValidationError
from ..utils.translation_utils import _
from .models import (
    AuthMethod,
    ForwardCreateInput,
    ForwardDirection,
    ForwardView,
    KeyCreateInput,
    KeyImportInput,
    SessionCreateInput,
)


def _require_text(field: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, _("Value must not be empty"), value)


def validate_port(field: str, value: Any) -> None:
    """Ports are integers between 1 and 65535."""
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            field, _("Port must be a valid number between 1 and 65535"), value
        ) from None
    if isinstance(value, bool) or not (1 <= port <= 65535):
        raise ValidationError(
            field, _("Port must be a valid number between 1 and 65535"), value
        )


def validate_session_input(data: SessionCreateInput) -> None:
    """Structural checks for a new connection profile."""
    _require_text("name", data.name)
    _require_text("host", data.host)
    _require_text("username", data.username)
    validate_port("port", data.port)
    try:
        AuthMethod(getattr(data.auth_method, "value", data.auth_method))
    except ValueError:
        raise ValidationError(
            "auth_method", _("Unknown authentication method"), data.auth_method
        ) from None


def validate_session_changes(changes: Mapping[str, Any]) -> None:
    """Same checks as ``validate_session_input`` for the fields being changed."""
    for name in ("name", "host", "username"):
        if name in changes:
            _require_text(name, changes[name])
    if "port" in changes:
        validate_port("port", changes["port"])
    if "auth_method" in changes:
        value = changes["auth_method"]
        try:
            AuthMethod(getattr(value, "value", value))
        except ValueError:
            raise ValidationError(
                "auth_method", _("Unknown authentication method"), value
            ) from None


def validate_key_reference(auth_method: AuthMethod, key_id: Optional[str]) -> None:
    """
    Key authentication needs a key. Only the session form calls this; the
    stores accept a profile without one and never pick a key themselves.
    """
    if AuthMethod(getattr(auth_method, "value", auth_method)) is AuthMethod.KEY:
        if not key_id:
            raise ValidationError(
                "key_id", _("Select a key for key-based authentication"), key_id
            )


def validate_group_name(name: Any) -> None:
    _require_text("name", name)


def validate_key_input(data: KeyCreateInput) -> None:
    _require_text("name", data.name)


def validate_key_name(name: Any) -> None:
    _require_text("name", name)


def validate_key_import(data: KeyImportInput) -> None:
    _require_text("name", data.name)
    _require_text("public_key", data.public_key)
    _require_text("private_key_path", data.private_key_path)


def validate_forward_input(data: ForwardCreateInput) -> None:
    """Remote endpoint is required for local/remote rules and absent for dynamic ones."""
    _require_text("name", data.name)
    _require_text("local_host", data.local_host)
    validate_port("local_port", data.local_port)
    try:
        direction = ForwardDirection(getattr(data.direction, "value", data.direction))
    except ValueError:
        raise ValidationError(
            "direction", _("Unknown forwarding type"), data.direction
        ) from None

    if direction is ForwardDirection.DYNAMIC:
        if data.remote_host or data.remote_port is not None:
            raise ValidationError(
                "remote_host",
                _("Dynamic forwarding does not take a remote endpoint"),
                data.remote_host,
            )
        return

    _require_text("remote_host", data.remote_host)
    validate_port("remote_port", data.remote_port)


def validate_forward_changes(changes: Mapping[str, Any], current: ForwardView) -> None:
    """
    Validate a rule as it would look with ``changes`` applied to ``current``.

    A rule that becomes dynamic drops its remote endpoint unless the changes
    set one explicitly, which is then rejected.
    """
    direction = changes.get("direction", current.direction)
    try:
        dynamic = (
            ForwardDirection(getattr(direction, "value", direction))
            is ForwardDirection.DYNAMIC
        )
    except ValueError:
        raise ValidationError("direction", _("Unknown forwarding type"), direction) from None

    def merged(name):
        if name in changes:
            return changes[name]
        return None if dynamic else getattr(current, name)

    validate_forward_input(
        ForwardCreateInput(
            session_id=current.session_id,
            name=changes.get("name", current.name),
            direction=direction,
            local_port=changes.get("local_port", current.local_port),
            local_host=changes.get("local_host", current.local_host),
            remote_host=merged("remote_host"),
            remote_port=merged("remote_port"),
        )
    )
