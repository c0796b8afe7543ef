from .base import EntityStore
from .forwards import ForwardStore
from .keys import KeyStore
from .sessions import SessionStore

__all__ = [
    "EntityStore",
    "ForwardStore",
    "KeyStore",
    "SessionStore",
]
