import asyncio
import itertools
from typing import Any, Dict, List, Optional

import pytest

from sshdeck.app import create_cache_context
from sshdeck.gateways.actions import ConnectionActionGateway
from sshdeck.gateways.persistence import PersistenceGateway
from sshdeck.settings.config import CacheSettings
from sshdeck.stores.forwards import ForwardStore
from sshdeck.stores.keys import KeyStore
from sshdeck.stores.sessions import SessionStore


class FakeInvoker:
    """
    Records every command and answers from ``_<command>`` handlers.

    ``fail(command, message)`` makes a command raise until ``recover``;
    ``gates[command]`` holds back the answer of a command until the event
    is set.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.failures: Dict[str, str] = {}
        self.gates: Dict[str, asyncio.Event] = {}

    def fail(self, command: str, message: str = "boom") -> None:
        self.failures[command] = message

    def recover(self, command: str) -> None:
        self.failures.pop(command, None)

    def calls_to(self, command: str) -> List[Dict[str, Any]]:
        return [args for name, args in self.calls if name == command]

    async def __call__(self, command: str, args: Dict[str, Any]) -> Any:
        self.calls.append((command, dict(args)))
        error: Optional[Exception] = None
        answer = None
        try:
            answer = self._answer(command, args)
        except Exception as e:
            error = e
        # a gate delays delivery of an answer already fixed at call time
        gate = self.gates.get(command)
        if gate is not None:
            await gate.wait()
        if error is not None:
            raise error
        return answer

    def _answer(self, command: str, args: Dict[str, Any]) -> Any:
        if command in self.failures:
            raise RuntimeError(self.failures[command])
        handler = getattr(self, "_" + command, None)
        if handler is None:
            raise RuntimeError(f"unknown command {command}")
        return handler(**args)


class FakeAuthority(FakeInvoker):
    """In-memory persistence authority speaking the ``db_*`` commands."""

    CREATED_AT = 1_700_000_000

    def __init__(self):
        super().__init__()
        self.groups: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.keys: Dict[str, Dict[str, Any]] = {}
        self.forwards: Dict[str, Dict[str, Any]] = {}
        self.next_ids: List[str] = []
        self._counter = itertools.count(1)

    def _new_id(self, prefix: str) -> str:
        if self.next_ids:
            return self.next_ids.pop(0)
        return f"{prefix}-{next(self._counter)}"

    def _insert(self, table: Dict[str, Dict[str, Any]], prefix: str, data: Dict[str, Any]):
        record = dict(data)
        record["id"] = record.get("id") or self._new_id(prefix)
        record.setdefault("created_at", self.CREATED_AT)
        record.setdefault("updated_at", self.CREATED_AT)
        table[record["id"]] = record
        return dict(record)

    @staticmethod
    def _update(table: Dict[str, Dict[str, Any]], id: str, input: Dict[str, Any]):
        if id not in table:
            raise KeyError(f"no row {id}")
        table[id].update(input)
        return dict(table[id])

    # seeding helpers

    def seed_group(self, name: str, id: Optional[str] = None, color: Optional[str] = None):
        return self._insert(self.groups, "grp", {"id": id, "name": name, "color": color})

    def seed_session(self, name: str = "web", id: Optional[str] = None, **fields):
        data = {
            "id": id,
            "name": name,
            "host": f"{name}.example.com",
            "port": 22,
            "username": "deploy",
            "auth_method": "password",
            "group_id": None,
            "key_id": None,
        }
        data.update(fields)
        return self._insert(self.sessions, "srv", data)

    def seed_key(self, name: str = "laptop", id: Optional[str] = None, **fields):
        data = {
            "id": id,
            "name": name,
            "type": "ed25519",
            "public_key": f"ssh-ed25519 AAAAC3Nza {name}",
            "private_key_path": None,
            "fingerprint": f"SHA256:{name}",
            "has_passphrase": False,
        }
        data.update(fields)
        return self._insert(self.keys, "key", data)

    def seed_forward(self, session_id: str, name: str = "db", id: Optional[str] = None, **fields):
        data = {
            "id": id,
            "session_id": session_id,
            "name": name,
            "type": "local",
            "local_host": "localhost",
            "local_port": 15432,
            "remote_host": "db.internal",
            "remote_port": 5432,
        }
        data.update(fields)
        return self._insert(self.forwards, "fwd", data)

    # groups

    def _db_get_groups(self):
        return [dict(g) for g in self.groups.values()]

    def _db_get_group(self, id):
        return dict(self.groups[id])

    def _db_create_group(self, input):
        return self._insert(self.groups, "grp", input)

    def _db_update_group(self, id, input):
        return self._update(self.groups, id, input)

    def _db_delete_group(self, id):
        self.groups.pop(id)
        for session in self.sessions.values():
            if session.get("group_id") == id:
                session["group_id"] = None

    # sessions

    def _db_get_all_sessions(self):
        return [dict(s) for s in self.sessions.values()]

    def _db_get_session(self, id):
        return dict(self.sessions[id])

    def _db_create_session(self, input):
        return self._insert(self.sessions, "srv", input)

    def _db_update_session(self, id, input):
        return self._update(self.sessions, id, input)

    def _db_delete_session(self, id):
        self.sessions.pop(id)
        for forward_id in [f for f, r in self.forwards.items() if r["session_id"] == id]:
            del self.forwards[forward_id]

    # keys

    def _db_get_ssh_keys(self):
        return [dict(k) for k in self.keys.values()]

    def _db_get_ssh_key(self, id):
        return dict(self.keys[id])

    def _db_create_ssh_key(self, input):
        return self._insert(self.keys, "key", input)

    def _db_update_ssh_key(self, id, input):
        return self._update(self.keys, id, input)

    def _db_delete_ssh_key(self, id):
        self.keys.pop(id)

    # port forwards

    def _db_get_port_forwards(self, session_id=None):
        return [
            dict(f)
            for f in self.forwards.values()
            if session_id is None or f["session_id"] == session_id
        ]

    def _db_get_port_forward(self, id):
        return dict(self.forwards[id])

    def _db_create_port_forward(self, input):
        return self._insert(self.forwards, "fwd", input)

    def _db_update_port_forward(self, id, input):
        return self._update(self.forwards, id, input)

    def _db_delete_port_forward(self, id):
        self.forwards.pop(id)


class FakeActions(FakeInvoker):
    """Connection-negotiation and key service that succeeds unless told otherwise."""

    _KEY_PREFIXES = {"ed25519": "ssh-ed25519", "rsa": "ssh-rsa", "ecdsa": "ecdsa-sha2-nistp256"}

    def _connect_session(self, session_id, password=None):
        return None

    def _disconnect_session(self, session_id):
        return None

    def _add_port_forward(self, config):
        return None

    def _remove_port_forward(self, forward_id):
        return None

    def _toggle_port_forward(self, forward_id, active):
        return None

    def _generate_ssh_key(self, name, type, passphrase=None):
        return f"{self._KEY_PREFIXES[type]} AAAAGENERATED {name}"

    def _ssh_key_fingerprint(self, public_key):
        return "SHA256:" + public_key.split()[-1]

    def _import_ssh_key(self, path, name):
        return None


class SignalRecorder:
    """Collects emissions of GObject signals as (name, args) tuples."""

    def __init__(self):
        self.events: List[tuple] = []

    def watch(self, obj, *names: str) -> "SignalRecorder":
        for name in names:
            obj.connect(name, self._make_handler(name))
        return self

    def _make_handler(self, name):
        def handler(_obj, *args):
            self.events.append((name, args))

        return handler

    def named(self, name: str) -> List[tuple]:
        return [args for event, args in self.events if event == name]


@pytest.fixture
def authority():
    return FakeAuthority()


@pytest.fixture
def actions():
    return FakeActions()


@pytest.fixture
def persistence(authority):
    return PersistenceGateway(authority)


@pytest.fixture
def action_gateway(actions):
    return ConnectionActionGateway(actions)


@pytest.fixture
def session_store(persistence, action_gateway):
    return SessionStore(persistence, action_gateway)


@pytest.fixture
def key_store(persistence, action_gateway):
    return KeyStore(persistence, action_gateway)


@pytest.fixture
def forward_store(persistence, action_gateway, session_store):
    return ForwardStore(persistence, action_gateway, session_store)


@pytest.fixture
def context(authority, actions):
    return create_cache_context(authority, actions, settings=CacheSettings())


@pytest.fixture
def recorder():
    return SignalRecorder()
