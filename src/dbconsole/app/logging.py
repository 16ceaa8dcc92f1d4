"""Structured JSON logging for the console.

Every line is one JSON object. Lifecycle operations run inside an
operation_context(); the formatter stamps its trace id, instance id and
action on every line logged while the operation runs, including lines from
the HTTP client it calls. Lines without an explicit `component` get one
derived from the module that logged them.
"""

import logging
import sys
import time
from collections import defaultdict, deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import IO, Any
from uuid import uuid4

from pythonjsonlogger import jsonlogger

from dbconsole.app.config import get_settings
from dbconsole.core.logging_schema import Component


@dataclass(frozen=True)
class OperationContext:
    trace_id: str
    instance_id: str | None = None
    action: str | None = None


_operation_ctx: ContextVar[OperationContext | None] = ContextVar(
    "dbconsole_operation", default=None
)


def current_operation() -> OperationContext | None:
    return _operation_ctx.get()


@contextmanager
def operation_context(
    instance_id: str | None = None,
    action: str | None = None,
    trace_id: str | None = None,
) -> Iterator[OperationContext]:
    """Bind an operation to the current task for the duration of the block.

    Nested blocks restore the outer operation on exit.
    """
    ctx = OperationContext(trace_id or uuid4().hex, instance_id, action)
    token = _operation_ctx.set(ctx)
    try:
        yield ctx
    finally:
        _operation_ctx.reset(token)


# Module prefix -> component, longest prefix wins
_MODULE_COMPONENTS: dict[str, Component] = {
    "dbconsole.control.store": Component.STORE,
    "dbconsole.control.actions": Component.ACTIONS,
    "dbconsole.control.wizard": Component.WIZARD,
    "dbconsole.control.logs": Component.LOGS,
    "dbconsole.services.user_service": Component.USERS,
    "dbconsole.client": Component.CLIENT,
}


def component_for(logger_name: str) -> str | None:
    matches = [prefix for prefix in _MODULE_COMPONENTS if logger_name.startswith(prefix)]
    if not matches:
        return None
    return _MODULE_COMPONENTS[max(matches, key=len)].value


class RepeatFilter(logging.Filter):
    """Caps how often one line repeats for one instance.

    A failing 5s auto-refresh or a reconcile loop against an unreachable
    control plane logs the same warning forever. Lines are keyed by logger,
    message template and instance; at most `limit` pass per `window`
    seconds. When the key is let through again, the line carries a
    `suppressed` count of what was dropped in between. ERROR and above
    always pass.
    """

    def __init__(
        self,
        limit: int = 100,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.limit = limit
        self.window = window
        self._clock = clock
        self._seen: dict[tuple[str, str, str | None], deque[float]] = defaultdict(deque)
        self._dropped: dict[tuple[str, str, str | None], int] = defaultdict(int)

    def _key(self, record: logging.LogRecord) -> tuple[str, str, str | None]:
        instance_id = getattr(record, "instance_id", None)
        if instance_id is None and (op := current_operation()) is not None:
            instance_id = op.instance_id
        return record.name, str(record.msg), instance_id

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        key = self._key(record)
        now = self._clock()
        seen = self._seen[key]
        while seen and now - seen[0] >= self.window:
            seen.popleft()

        if len(seen) >= self.limit:
            self._dropped[key] += 1
            return False

        seen.append(now)
        dropped = self._dropped.pop(key, 0)
        if dropped:
            record.suppressed = dropped
        return True


class ConsoleJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines with service, schema version, component and operation fields."""

    def __init__(
        self,
        *args: Any,
        schema_version: str | None = None,
        service: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        settings = get_settings()
        self._schema_version = schema_version or settings.logging.schema_version
        self._service = service or settings.logging.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["schema_version"] = self._schema_version
        log_record["service"] = self._service

        if "component" not in log_record and (component := component_for(record.name)):
            log_record["component"] = component

        if (op := current_operation()) is not None:
            log_record["trace_id"] = op.trace_id
            if op.instance_id and "instance_id" not in log_record:
                log_record["instance_id"] = op.instance_id
            if op.action and "action" not in log_record:
                log_record["action"] = op.action

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        level = get_settings().logging.level
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def setup_logging(
    level: str | int | None = None, stream: IO[str] | None = None
) -> logging.Handler:
    """Install the console's JSON handler on the root logger.

    Safe to call repeatedly: a handler installed by an earlier call is
    replaced, handlers installed by anyone else are left alone.

    Args:
        level: Level name or number. None uses LOGGING_LEVEL.
        stream: Output stream, stdout by default.

    Returns:
        The installed handler.
    """
    settings = get_settings()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(ConsoleJsonFormatter())
    handler.addFilter(RepeatFilter(settings.logging.rate_limit_per_minute))
    handler.dbconsole_handler = True  # type: ignore[attr-defined]

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, "dbconsole_handler", False):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(_resolve_level(level))

    # Auto-refresh polling makes per-request client logs noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return handler
