"""Domain enums and catalogs."""

from dbconsole.core.domain.catalog import (
    DATABASE_OPTIONS,
    DATABASE_PRIVILEGES,
    DEFAULT_REGION,
    INSTANCE_TYPES,
    DatabaseOption,
    InstanceTypeOption,
)
from dbconsole.core.domain.instance import (
    ALLOWED_SOURCES,
    SUCCESS_STATUS,
    ActionKind,
    InstanceStatus,
    LogLevel,
    LogType,
    can_dispatch,
)

__all__ = [
    "ALLOWED_SOURCES",
    "DATABASE_OPTIONS",
    "DATABASE_PRIVILEGES",
    "DEFAULT_REGION",
    "INSTANCE_TYPES",
    "SUCCESS_STATUS",
    "ActionKind",
    "DatabaseOption",
    "InstanceStatus",
    "InstanceTypeOption",
    "LogLevel",
    "LogType",
    "can_dispatch",
]
