"""Log entry model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from dbconsole.core.domain import LogLevel

_LEVEL_ALIASES = {"warn": LogLevel.WARNING}


def normalize_level(value: object) -> LogLevel:
    """Case-insensitive level name (or alias) to LogLevel; anything else is UNKNOWN."""
    if not isinstance(value, str):
        return LogLevel.UNKNOWN
    normalized = value.strip().lower()
    if normalized in _LEVEL_ALIASES:
        return _LEVEL_ALIASES[normalized]
    if normalized in LogLevel._value2member_map_:
        return LogLevel(normalized)
    return LogLevel.UNKNOWN


class LogEntry(BaseModel):
    """Single log line, immutable once received."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: datetime | None = None
    level: LogLevel = LogLevel.UNKNOWN
    source: str = ""
    message: str = ""

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: object) -> LogLevel:
        return normalize_level(value)

    @field_validator("source", "message", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return "" if value is None else value
