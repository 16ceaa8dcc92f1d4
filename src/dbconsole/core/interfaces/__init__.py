"""Core interfaces for the lifecycle controller."""

from dbconsole.core.interfaces.auth import SessionProvider, StaticSession
from dbconsole.core.interfaces.control_plane import ControlPlane
from dbconsole.core.interfaces.sinks import Clipboard, FileSink, Navigator, Notifier

__all__ = [
    # Control plane
    "ControlPlane",
    # Session
    "SessionProvider",
    "StaticSession",
    # Side-effect sinks
    "Clipboard",
    "FileSink",
    "Navigator",
    "Notifier",
]
