from sshdeck.sessions.mapper import (
    MapperContext,
    detect_key_algorithm,
    forward_patch_to_input,
    forward_to_action_config,
    forward_to_input,
    forward_to_view,
    group_to_view,
    session_patch_to_input,
    session_to_input,
    session_to_view,
)
from sshdeck.sessions.models import (
    AuthMethod,
    ConnectionStatus,
    ForwardCreateInput,
    ForwardDirection,
    GroupView,
    KeyAlgorithm,
    SessionCreateInput,
)

CONTEXT = MapperContext.from_groups([GroupView(id="grp-1", name="prod")])

SESSION_RECORD = {
    "id": "srv-1",
    "name": "web",
    "group_id": "grp-1",
    "host": "web.example.com",
    "port": 2222,
    "username": "deploy",
    "auth_method": "key",
    "key_id": "key-1",
    "created_at": 1,
    "updated_at": 2,
}


def test_session_to_view_resolves_group_and_defaults_runtime():
    view = session_to_view(SESSION_RECORD, CONTEXT)

    assert view.group == "prod"
    assert view.auth_method is AuthMethod.KEY
    assert view.status is ConnectionStatus.IDLE
    assert view.error is None
    assert (view.rows, view.cols) == (24, 80)
    assert view.forwards == ()


def test_session_to_view_with_unknown_group():
    view = session_to_view({**SESSION_RECORD, "group_id": "grp-404"}, CONTEXT)
    assert view.group is None


def test_session_to_input_prefers_explicit_group_id():
    data = SessionCreateInput(name="web", host="h", username="u", group="prod")

    assert session_to_input(data, CONTEXT)["group_id"] == "grp-1"
    assert session_to_input(data, CONTEXT, group_id="grp-7")["group_id"] == "grp-7"
    assert session_to_input(data, CONTEXT)["auth_method"] == "password"


def test_session_patch_drops_runtime_fields():
    patch = session_patch_to_input(
        {
            "status": ConnectionStatus.LIVE,
            "rows": 10,
            "forwards": (),
            "group": "prod",
            "port": "2200",
            "auth_method": AuthMethod.AGENT,
            "unknown": 1,
        },
        CONTEXT,
    )

    assert patch == {"group_id": "grp-1", "port": 2200, "auth_method": "agent"}


def test_group_to_view_keeps_color():
    assert group_to_view({"id": "g", "name": "n", "color": "#fff"}).color == "#fff"


def test_detect_key_algorithm():
    assert detect_key_algorithm("ssh-ed25519 AAAA") is KeyAlgorithm.ED25519
    assert detect_key_algorithm("ecdsa-sha2-nistp384 AAAA") is KeyAlgorithm.ECDSA
    assert detect_key_algorithm("ssh-rsa AAAA") is KeyAlgorithm.RSA
    assert detect_key_algorithm("garbage") is KeyAlgorithm.RSA


def test_forward_to_view_starts_inactive():
    view = forward_to_view(
        {
            "id": "fwd-1",
            "session_id": "srv-1",
            "name": "socks",
            "type": "dynamic",
            "local_host": None,
            "local_port": 1080,
            "remote_host": None,
            "remote_port": None,
        }
    )

    assert view.direction is ForwardDirection.DYNAMIC
    assert view.local_host == "localhost"
    assert view.active is False


def test_forward_to_input_strips_remote_for_dynamic():
    record = forward_to_input(
        ForwardCreateInput(
            session_id="srv-1", name="socks", direction="dynamic",
            local_port=1080, remote_host="ignored", remote_port=1,
        )
    )
    assert record["type"] == "dynamic"
    assert record["remote_host"] is None
    assert record["remote_port"] is None


def test_forward_patch_and_action_config():
    assert forward_patch_to_input({"direction": ForwardDirection.REMOTE, "active": True}) == {
        "type": "remote"
    }
    assert forward_patch_to_input({"direction": "dynamic", "name": "socks"}) == {
        "type": "dynamic",
        "name": "socks",
        "remote_host": None,
        "remote_port": None,
    }

    view = forward_to_view(
        {
            "id": "fwd-2",
            "session_id": "srv-1",
            "name": "pg",
            "type": "local",
            "local_port": 15432,
            "remote_host": "db",
            "remote_port": 5432,
        }
    )
    config = forward_to_action_config(view)
    assert config["id"] == "fwd-2"
    assert config["type"] == "local"
    assert config["remote_port"] == 5432
