"""Console data models."""

from dbconsole.core.models.instance import (
    ConnectionInfo,
    DatabaseUser,
    Instance,
    NetworkConfig,
    PendingAction,
)
from dbconsole.core.models.logs import LogEntry, normalize_level
from dbconsole.core.models.outcome import Outcome

__all__ = [
    "ConnectionInfo",
    "DatabaseUser",
    "Instance",
    "LogEntry",
    "NetworkConfig",
    "Outcome",
    "PendingAction",
    "normalize_level",
]
