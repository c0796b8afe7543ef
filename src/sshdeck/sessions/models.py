# sshdeck/sessions/models.py
"""
View models held by the entity stores.

Every view row is an immutable dataclass. Stores never mutate a row in
place; they build a replacement with ``dataclasses.replace`` and swap a new
collection tuple in, so the previous tuple is always a usable pre-image.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from ..settings.config import CacheDefaults


class ConnectionStatus(Enum):
    """Runtime connection state of a profile."""
    IDLE = "Idle"
    CONNECTING = "Connecting"
    LIVE = "Live"
    FAILED = "Failed"


class AuthMethod(Enum):
    PASSWORD = "password"
    KEY = "key"
    AGENT = "agent"


class KeyAlgorithm(Enum):
    RSA = "rsa"
    ED25519 = "ed25519"
    ECDSA = "ecdsa"


class ForwardDirection(Enum):
    LOCAL = "local"
    REMOTE = "remote"
    DYNAMIC = "dynamic"


class ViewMode(Enum):
    """Which top-level view the UI shows."""
    DASHBOARD = "dashboard"
    TERMINAL = "terminal"
    KEYS = "keys"
    PORT_FORWARDS = "port_forwards"


# Fields of SessionView that never reach the persistence authority.
SESSION_RUNTIME_FIELDS = ("status", "error", "rows", "cols", "forwards")
FORWARD_RUNTIME_FIELDS = ("active",)


@dataclass(frozen=True, slots=True)
class ForwardView:
    """A forwarding rule as the UI sees it."""
    id: str
    session_id: str
    name: str
    direction: ForwardDirection
    local_host: str
    local_port: int
    remote_host: Optional[str] = None
    remote_port: Optional[int] = None
    # Runtime only, never persisted
    active: bool = False


@dataclass(frozen=True, slots=True)
class SessionView:
    """A connection profile plus its runtime state."""
    id: str
    name: str
    host: str
    port: int
    username: str
    auth_method: AuthMethod
    group: Optional[str] = None  # resolved group name
    key_id: Optional[str] = None
    # Runtime only, never persisted
    status: ConnectionStatus = ConnectionStatus.IDLE
    error: Optional[str] = None
    rows: int = CacheDefaults.TERMINAL_ROWS
    cols: int = CacheDefaults.TERMINAL_COLS
    forwards: Tuple[ForwardView, ...] = ()

    @property
    def is_live(self) -> bool:
        return self.status is ConnectionStatus.LIVE


@dataclass(frozen=True, slots=True)
class GroupView:
    id: str
    name: str
    color: Optional[str] = None


@dataclass(frozen=True, slots=True)
class KeyView:
    id: str
    name: str
    algorithm: KeyAlgorithm
    public_key: str
    fingerprint: str
    has_passphrase: bool
    created_at: datetime
    private_key_path: Optional[str] = None


@dataclass(slots=True)
class SessionCreateInput:
    """Form payload for a new connection profile."""
    name: str
    host: str
    username: str
    port: int = CacheDefaults.SSH_PORT
    auth_method: AuthMethod = AuthMethod.PASSWORD
    group: Optional[str] = None
    key_id: Optional[str] = None


@dataclass(slots=True)
class KeyCreateInput:
    """Form payload for generating a new key pair."""
    name: str
    algorithm: KeyAlgorithm = KeyAlgorithm.ED25519
    # Opaque secondary secret, only forwarded to the key generator
    passphrase: Optional[str] = field(default=None, repr=False)


@dataclass(slots=True)
class KeyImportInput:
    """Form payload for registering an existing private key file."""
    name: str
    public_key: str
    private_key_path: str


@dataclass(slots=True)
class ForwardCreateInput:
    session_id: str
    name: str
    direction: ForwardDirection
    local_port: int
    local_host: str = CacheDefaults.FORWARD_BIND_HOST
    remote_host: Optional[str] = None
    remote_port: Optional[int] = None

