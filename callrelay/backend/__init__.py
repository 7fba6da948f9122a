"""Backend package for the call signaling relay."""

from .annotations import AnnotationStore
from .config import RelaySettings, load_settings
from .directory import InMemoryUserDirectory, UserDirectory, create_directory
from .hub import ConnectionHub
from .presence import PresenceRegistry
from .relay import RelayServer, SignalingRelay
from .security import hash_password, verify_password
from .sessions import CallSession, CallSessionManager

__all__ = [
    "AnnotationStore",
    "CallSession",
    "CallSessionManager",
    "ConnectionHub",
    "create_directory",
    "hash_password",
    "InMemoryUserDirectory",
    "load_settings",
    "PresenceRegistry",
    "RelayServer",
    "RelaySettings",
    "SignalingRelay",
    "UserDirectory",
    "verify_password",
]
