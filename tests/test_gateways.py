import asyncio

import pytest

from sshdeck.utils.exceptions import ErrorCategory, NegotiationError, PersistenceError


def test_persistence_commands_and_arguments(authority, persistence):
    async def scenario():
        group = await persistence.create_group({"name": "prod", "color": None})
        await persistence.update_group(group["id"], {"color": "#000"})
        await persistence.list_forwards()
        await persistence.list_forwards("srv-1")
        await persistence.delete_group(group["id"])

    asyncio.run(scenario())

    assert [name for name, _args in authority.calls] == [
        "db_create_group",
        "db_update_group",
        "db_get_port_forwards",
        "db_get_port_forwards",
        "db_delete_group",
    ]
    assert authority.calls[1][1] == {"id": "grp-1", "input": {"color": "#000"}}
    assert authority.calls[2][1] == {"session_id": None}


def test_persistence_failures_become_persistence_errors(authority, persistence):
    authority.fail("db_get_all_sessions", "no such table")

    with pytest.raises(PersistenceError) as excinfo:
        asyncio.run(persistence.list_sessions())

    error = excinfo.value
    assert error.reason == "no such table"
    assert error.operation == "list"
    assert error.category is ErrorCategory.STORAGE
    assert isinstance(error.__cause__, RuntimeError)


def test_missing_row_surfaces_as_persistence_error(persistence):
    with pytest.raises(PersistenceError):
        asyncio.run(persistence.get_session("nope"))


def test_action_failures_become_negotiation_errors(actions, action_gateway):
    actions.fail("connect_session", "auth failed")

    with pytest.raises(NegotiationError) as excinfo:
        asyncio.run(action_gateway.connect("srv-1"))

    assert excinfo.value.reason == "auth failed"
    assert excinfo.value.user_message == "auth failed"
    assert len(actions.calls_to("connect_session")) == 1


def test_key_service_results(actions, action_gateway):
    async def scenario():
        public_key = await action_gateway.generate_key("ci", "ed25519")
        return public_key, await action_gateway.fingerprint(public_key)

    public_key, fingerprint = asyncio.run(scenario())

    assert public_key == "ssh-ed25519 AAAAGENERATED ci"
    assert fingerprint == "SHA256:ci"
