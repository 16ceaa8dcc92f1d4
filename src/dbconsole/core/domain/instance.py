"""Instance domain enums and the lifecycle transition table."""

from enum import StrEnum


class InstanceStatus(StrEnum):
    """Instance status as reported by the control plane."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"
    TERMINATING = "terminating"
    ERROR = "error"


class ActionKind(StrEnum):
    """User-requested lifecycle action."""

    START = "start"
    STOP = "stop"
    TERMINATE = "terminate"


class LogLevel(StrEnum):
    """Normalized log entry level."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"
    DEBUG = "debug"
    UNKNOWN = "unknown"


class LogType(StrEnum):
    """Log source selector (maps to the logs endpoint suffix)."""

    ALL = "all"
    DATABASE = "database"
    SYSTEM = "system"


# Statuses each action may be dispatched from.
# start from pending is not allowed: provisioning must complete first.
ALLOWED_SOURCES: dict[ActionKind, frozenset[InstanceStatus]] = {
    ActionKind.START: frozenset({InstanceStatus.STOPPED}),
    ActionKind.STOP: frozenset({InstanceStatus.RUNNING}),
    ActionKind.TERMINATE: frozenset({
        InstanceStatus.PENDING,
        InstanceStatus.RUNNING,
        InstanceStatus.STOPPED,
        InstanceStatus.ERROR,
    }),
}

# Optimistic status applied after a successful call (None = remove from store)
SUCCESS_STATUS: dict[ActionKind, InstanceStatus | None] = {
    ActionKind.START: InstanceStatus.RUNNING,
    ActionKind.STOP: InstanceStatus.STOPPED,
    ActionKind.TERMINATE: None,
}


def can_dispatch(kind: ActionKind, status: InstanceStatus) -> bool:
    """Return True if `kind` is a legal transition from `status`."""
    return status in ALLOWED_SOURCES[kind]
