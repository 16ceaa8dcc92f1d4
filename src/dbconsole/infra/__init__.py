"""Infrastructure helpers: scheduling and default sinks."""

from dbconsole.infra.scheduler import PeriodicTask
from dbconsole.infra.sinks import (
    DirectoryFileSink,
    LoggingNavigator,
    LoggingNotifier,
    MemoryClipboard,
)

__all__ = [
    "DirectoryFileSink",
    "LoggingNavigator",
    "LoggingNotifier",
    "MemoryClipboard",
    "PeriodicTask",
]
