import pytest

from sshdeck.sessions.models import (
    AuthMethod,
    ForwardCreateInput,
    ForwardDirection,
    ForwardView,
    KeyImportInput,
    SessionCreateInput,
)
from sshdeck.sessions.validation import (
    validate_forward_changes,
    validate_forward_input,
    validate_key_import,
    validate_key_reference,
    validate_port,
    validate_session_changes,
    validate_session_input,
)
from sshdeck.utils.exceptions import ValidationError


@pytest.mark.parametrize("port", [1, 22, 65535, "8022"])
def test_valid_ports(port):
    validate_port("port", port)


@pytest.mark.parametrize("port", [0, 65536, -1, "ssh", None, True])
def test_invalid_ports(port):
    with pytest.raises(ValidationError) as excinfo:
        validate_port("port", port)
    assert excinfo.value.field == "port"


def test_session_input_requires_host():
    with pytest.raises(ValidationError) as excinfo:
        validate_session_input(SessionCreateInput(name="web", host=" ", username="u"))
    assert excinfo.value.field == "host"


def test_session_input_rejects_unknown_auth_method():
    with pytest.raises(ValidationError):
        validate_session_input(
            SessionCreateInput(name="web", host="h", username="u", auth_method="kerberos")
        )


def test_session_changes_only_check_present_fields():
    validate_session_changes({"port": 2222, "status": "Live"})
    with pytest.raises(ValidationError):
        validate_session_changes({"username": ""})


def test_key_reference_only_matters_for_key_auth():
    validate_key_reference(AuthMethod.PASSWORD, None)
    validate_key_reference(AuthMethod.KEY, "key-1")
    with pytest.raises(ValidationError) as excinfo:
        validate_key_reference(AuthMethod.KEY, None)
    assert excinfo.value.field == "key_id"


def test_forward_local_requires_remote_endpoint():
    with pytest.raises(ValidationError):
        validate_forward_input(
            ForwardCreateInput(
                session_id="s", name="pg", direction=ForwardDirection.LOCAL, local_port=15432
            )
        )


def test_forward_dynamic_rejects_remote_endpoint():
    validate_forward_input(
        ForwardCreateInput(
            session_id="s", name="socks", direction=ForwardDirection.DYNAMIC, local_port=1080
        )
    )
    with pytest.raises(ValidationError):
        validate_forward_input(
            ForwardCreateInput(
                session_id="s", name="socks", direction=ForwardDirection.DYNAMIC,
                local_port=1080, remote_port=22,
            )
        )


_PG = ForwardView(
    id="fwd-1", session_id="srv-1", name="pg", direction=ForwardDirection.LOCAL,
    local_host="localhost", local_port=15432, remote_host="db", remote_port=5432,
)


def test_forward_changes_are_checked_against_the_current_rule():
    validate_forward_changes({"local_port": 25432}, _PG)
    with pytest.raises(ValidationError):
        validate_forward_changes({"local_port": 70000}, _PG)
    with pytest.raises(ValidationError) as excinfo:
        validate_forward_changes({"remote_port": None}, _PG)
    assert excinfo.value.field == "remote_port"


def test_forward_becoming_dynamic_drops_remote_endpoint():
    validate_forward_changes({"direction": ForwardDirection.DYNAMIC}, _PG)
    with pytest.raises(ValidationError):
        validate_forward_changes({"direction": "dynamic", "remote_host": "db"}, _PG)


def test_forward_leaving_dynamic_needs_remote_endpoint():
    socks = ForwardView(
        id="fwd-2", session_id="srv-1", name="socks", direction=ForwardDirection.DYNAMIC,
        local_host="localhost", local_port=1080,
    )

    with pytest.raises(ValidationError) as excinfo:
        validate_forward_changes({"direction": "remote"}, socks)
    assert excinfo.value.field == "remote_host"
    with pytest.raises(ValidationError) as excinfo:
        validate_forward_changes({"direction": "sideways"}, socks)
    assert excinfo.value.field == "direction"
    validate_forward_changes(
        {"direction": "remote", "remote_host": "db", "remote_port": 5432}, socks
    )


def test_key_import_requires_private_key_path():
    with pytest.raises(ValidationError) as excinfo:
        validate_key_import(KeyImportInput(name="k", public_key="ssh-rsa A", private_key_path=""))
    assert excinfo.value.field == "private_key_path"
