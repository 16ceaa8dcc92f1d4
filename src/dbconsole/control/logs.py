"""Log Stream Aggregator - per-instance log window with filters and polling.

Window:
    fetch() replaces the window with the most recent `lines` entries from the
    control plane (server order, bounded to `max_entries`). A failed fetch
    keeps the previous window.

Filters:
    search / level are applied locally by visible_entries().
    log_type / since are server-side: changing them triggers a re-fetch.

Polling:
    One PeriodicTask. Toggling auto-refresh cancels or reschedules it; the
    first automatic fetch happens one interval after enabling.

Teardown:
    close() cancels the timer and any in-flight fetch. Results that arrive
    afterwards (or that were overtaken by a newer fetch) are discarded.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from dbconsole.app.config import get_settings
from dbconsole.app.metrics.collector import LOG_FETCHES_TOTAL
from dbconsole.core.domain import LogLevel, LogType
from dbconsole.core.errors import ConsoleError
from dbconsole.core.interfaces import ControlPlane, FileSink, Notifier
from dbconsole.core.logging_schema import Component, LogEvent
from dbconsole.core.models import LogEntry, Outcome, normalize_level
from dbconsole.infra.scheduler import PeriodicTask

logger = logging.getLogger(__name__)

_viewer_config = get_settings().log_viewer

ALL_LEVELS = "all"


@dataclass
class LogFilters:
    search: str = ""
    level: LogLevel | None = None  # None: all levels
    log_type: LogType = LogType.ALL
    since: datetime | None = None

    def matches(self, entry: LogEntry) -> bool:
        if self.level is not None and entry.level != self.level:
            return False
        if self.search:
            needle = self.search.lower()
            return needle in entry.message.lower() or needle in entry.source.lower()
        return True


def download_filename(instance_id: str) -> str:
    return f"instance-{instance_id}-logs.txt"


class LogStreamAggregator:
    """Log window for one instance."""

    def __init__(
        self,
        instance_id: str,
        control_plane: ControlPlane,
        notifier: Notifier | None = None,
        file_sink: FileSink | None = None,
        *,
        lines: int = _viewer_config.page_lines,
        refresh_interval: float = _viewer_config.refresh_interval,
        max_entries: int = _viewer_config.max_entries,
    ) -> None:
        self._instance_id = instance_id
        self._control_plane = control_plane
        self._notifier = notifier
        if lines < 1 or max_entries < 1:
            raise ValueError("lines and max_entries must be positive")
        self._file_sink = file_sink
        self._lines = lines
        self._max_entries = max_entries

        self._entries: list[LogEntry] = []
        self._filters = LogFilters()
        self._generation = 0
        self._inflight: set[asyncio.Task[list[LogEntry]]] = set()
        self._last_fetched_at: datetime | None = None
        self._closed = False
        self._timer = PeriodicTask(
            self._auto_fetch,
            interval=refresh_interval,
            name=f"logs-refresh-{instance_id}",
        )

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def entries(self) -> list[LogEntry]:
        """Unfiltered window."""
        return list(self._entries)

    @property
    def filters(self) -> LogFilters:
        return self._filters

    @property
    def loading(self) -> bool:
        return bool(self._inflight)

    @property
    def auto_refresh(self) -> bool:
        return self._timer.running

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_fetched_at(self) -> datetime | None:
        return self._last_fetched_at

    def visible_entries(self) -> list[LogEntry]:
        """Window after the local search and level filters, order preserved."""
        return [entry for entry in self._entries if self._filters.matches(entry)]

    # =========================================================================
    # Fetching
    # =========================================================================

    async def fetch(self, trigger: str = "manual") -> Outcome[list[LogEntry]]:
        """Replace the window with the latest entries.

        Returns:
            Outcome with the window after the fetch. A failure keeps the
            previous window and notifies "Failed to load logs".
        """
        if self._closed:
            return Outcome.success(self.entries)

        self._generation += 1
        generation = self._generation
        task = asyncio.create_task(
            self._control_plane.fetch_logs(
                self._instance_id,
                log_type=self._filters.log_type,
                lines=self._lines,
                start_time=self._filters.since,
            ),
            name=f"logs-fetch-{self._instance_id}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

        try:
            fetched = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # Inner request cancelled by close()
            LOG_FETCHES_TOTAL.labels(trigger=trigger, result="discarded").inc()
            return Outcome.success(self.entries)
        except ConsoleError as exc:
            if self._closed or generation != self._generation:
                LOG_FETCHES_TOTAL.labels(trigger=trigger, result="discarded").inc()
                return Outcome.failure(exc)
            LOG_FETCHES_TOTAL.labels(trigger=trigger, result="failure").inc()
            logger.warning(
                "Failed to load logs: %s",
                exc.message,
                extra={
                    "event": LogEvent.LOGS_FETCH_FAILED,
                    "component": Component.LOGS,
                    "instance_id": self._instance_id,
                    "error_code": exc.code.value,
                },
            )
            if self._notifier:
                self._notifier.error("Failed to load logs")
            return Outcome.failure(exc)

        if self._closed or generation != self._generation:
            LOG_FETCHES_TOTAL.labels(trigger=trigger, result="discarded").inc()
            return Outcome.success(self.entries)

        self._entries = list(fetched)[-self._max_entries :]
        self._last_fetched_at = datetime.now(UTC)
        LOG_FETCHES_TOTAL.labels(trigger=trigger, result="success").inc()
        logger.debug(
            "Fetched %d log entries",
            len(self._entries),
            extra={
                "event": LogEvent.LOGS_FETCHED,
                "component": Component.LOGS,
                "instance_id": self._instance_id,
            },
        )
        return Outcome.success(self.entries)

    async def _auto_fetch(self) -> None:
        await self.fetch(trigger="auto")

    # =========================================================================
    # Filters
    # =========================================================================

    def set_search(self, text: str | None) -> None:
        self._filters.search = text or ""

    def set_level(self, level: LogLevel | str | None) -> None:
        """Set the level filter. "all" (or None) disables it.

        Names are matched case-insensitively and "warn" means warning.
        """
        if level is None or str(level).strip().lower() == ALL_LEVELS:
            self._filters.level = None
        else:
            self._filters.level = normalize_level(level)

    async def set_log_type(self, log_type: LogType | str) -> Outcome[list[LogEntry]]:
        log_type = LogType(log_type)
        if log_type == self._filters.log_type:
            return Outcome.success(self.entries)
        self._filters.log_type = log_type
        return await self.fetch(trigger="filter")

    async def set_since(self, since: datetime | None) -> Outcome[list[LogEntry]]:
        if since == self._filters.since:
            return Outcome.success(self.entries)
        self._filters.since = since
        return await self.fetch(trigger="filter")

    # =========================================================================
    # Auto-refresh
    # =========================================================================

    def set_auto_refresh(self, enabled: bool) -> None:
        if self._closed:
            return
        if enabled:
            self._timer.start()
        else:
            self._timer.cancel()
        logger.info(
            "Auto-refresh %s",
            "enabled" if enabled else "disabled",
            extra={
                "event": LogEvent.AUTO_REFRESH_CHANGED,
                "component": Component.LOGS,
                "instance_id": self._instance_id,
                "interval": self._timer.interval,
            },
        )

    # =========================================================================
    # Download
    # =========================================================================

    async def download(self) -> Outcome[bytes]:
        """Download the full log file and hand it to the FileSink.

        Not retried. Failures notify "Failed to download logs".
        """
        chunks: list[bytes] = []
        try:
            async for chunk in self._control_plane.download_logs(self._instance_id):
                chunks.append(chunk)
        except ConsoleError as exc:
            logger.warning(
                "Failed to download logs: %s",
                exc.message,
                extra={
                    "event": LogEvent.LOGS_FETCH_FAILED,
                    "component": Component.LOGS,
                    "instance_id": self._instance_id,
                    "error_code": exc.code.value,
                },
            )
            if self._notifier:
                self._notifier.error("Failed to download logs")
            return Outcome.failure(exc)

        data = b"".join(chunks)
        if self._file_sink is not None:
            self._file_sink.save(download_filename(self._instance_id), data)
        logger.info(
            "Downloaded %d bytes of logs",
            len(data),
            extra={
                "event": LogEvent.LOGS_DOWNLOADED,
                "component": Component.LOGS,
                "instance_id": self._instance_id,
            },
        )
        if self._notifier:
            self._notifier.success("Logs downloaded successfully")
        return Outcome.success(data)

    async def close(self) -> None:
        """Stop polling and cancel in-flight fetches (view teardown)."""
        self._closed = True
        await self._timer.stop()
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
