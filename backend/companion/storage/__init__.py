"""Storage module - session stores and the policy that picks between them."""

from .interface import SessionStore
from .key_value import KeyValueStore
from .local_store import LocalSessionStore
from .remote_store import RemoteSessionStore
from .persistence import SessionPersistence

__all__ = [
    'SessionStore', 'KeyValueStore', 'LocalSessionStore',
    'RemoteSessionStore', 'SessionPersistence',
]
