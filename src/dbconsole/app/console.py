"""Console composition root.

Wires settings, session, control plane client, store and coordinator, and
hands out per-view components (wizard, log viewers, user managers).

Usage:
    async with Console(session=StaticSession(access_token=token)) as console:
        await console.actions.dispatch(instance_id, ActionKind.STOP)
"""

import logging
from pathlib import Path
from types import TracebackType

from dbconsole.app.config import Settings, get_settings
from dbconsole.app.logging import setup_logging
from dbconsole.app.metrics import get_metrics_text
from dbconsole.client import ControlPlaneClientConfig, HttpControlPlane
from dbconsole.control import (
    ActionCoordinator,
    CreateInstanceWizard,
    InstanceStore,
    LogStreamAggregator,
)
from dbconsole.core.interfaces import (
    Clipboard,
    ControlPlane,
    FileSink,
    Navigator,
    Notifier,
    SessionProvider,
)
from dbconsole.core.logging_schema import LogEvent
from dbconsole.core.models import Instance, Outcome
from dbconsole.infra import (
    DirectoryFileSink,
    LoggingNavigator,
    LoggingNotifier,
    MemoryClipboard,
)
from dbconsole.services import (
    ConnectionDetails,
    DashboardStats,
    DatabaseUserManager,
    copy_to_clipboard,
    dashboard_stats,
    load_connection,
    recent_instances,
)

logger = logging.getLogger(__name__)


class Console:
    """One console session."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        session: SessionProvider | None = None,
        control_plane: ControlPlane | None = None,
        notifier: Notifier | None = None,
        navigator: Navigator | None = None,
        clipboard: Clipboard | None = None,
        file_sink: FileSink | None = None,
        download_dir: Path | str = ".",
        configure_logging: bool = True,
    ) -> None:
        self.settings = settings or get_settings()
        self._configure_logging = configure_logging
        cp_config = self.settings.control_plane
        self.control_plane = control_plane or HttpControlPlane(
            ControlPlaneClientConfig(
                endpoint=cp_config.endpoint,
                token=cp_config.token,
                timeout=cp_config.timeout,
                download_timeout=cp_config.download_timeout,
            ),
            session=session,
        )
        self.notifier = notifier or LoggingNotifier()
        self.navigator = navigator or LoggingNavigator()
        self.clipboard = clipboard or MemoryClipboard()
        self.file_sink = file_sink or DirectoryFileSink(download_dir)

        store_config = self.settings.store
        self.store = InstanceStore(
            self.control_plane,
            self.notifier,
            max_retries=store_config.load_max_retries,
            retry_base_delay=store_config.retry_base_delay,
            retry_max_delay=store_config.retry_max_delay,
        )
        self.actions = ActionCoordinator(
            self.store, self.control_plane, self.notifier, self.navigator
        )
        self._log_viewers: dict[str, LogStreamAggregator] = {}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> Outcome[list[Instance]]:
        """Install JSON logging (unless disabled) and load the instance list."""
        if self._configure_logging:
            setup_logging(self.settings.logging.level)
        logger.info("Console started", extra={"event": LogEvent.CONSOLE_STARTED})
        return await self.store.refresh()

    async def close(self) -> None:
        for viewer in list(self._log_viewers.values()):
            await viewer.close()
        self._log_viewers.clear()
        await self.actions.close()
        await self.store.close()
        await self.control_plane.close()
        logger.info("Console stopped", extra={"event": LogEvent.CONSOLE_STOPPED})

    async def __aenter__(self) -> "Console":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # =========================================================================
    # Per-view components
    # =========================================================================

    def create_wizard(self) -> CreateInstanceWizard:
        return CreateInstanceWizard(
            self.control_plane, self.store, self.notifier, self.navigator
        )

    def open_logs(self, instance_id: str) -> LogStreamAggregator:
        """Log viewer for an instance. One per instance; reopening reuses it."""
        viewer = self._log_viewers.get(instance_id)
        if viewer is None or viewer.closed:
            viewer_config = self.settings.log_viewer
            viewer = LogStreamAggregator(
                instance_id,
                self.control_plane,
                self.notifier,
                self.file_sink,
                lines=viewer_config.page_lines,
                refresh_interval=viewer_config.refresh_interval,
                max_entries=viewer_config.max_entries,
            )
            self._log_viewers[instance_id] = viewer
        return viewer

    async def close_logs(self, instance_id: str) -> None:
        viewer = self._log_viewers.pop(instance_id, None)
        if viewer is not None:
            await viewer.close()

    def user_manager(self, instance_id: str) -> DatabaseUserManager:
        return DatabaseUserManager(instance_id, self.control_plane, self.notifier)

    # =========================================================================
    # Read-side views
    # =========================================================================

    def dashboard(self) -> tuple[DashboardStats, list[Instance]]:
        instances = self.store.instances()
        return dashboard_stats(instances), recent_instances(instances)

    async def connection_details(self, instance_id: str) -> ConnectionDetails:
        """Raises InstanceNotFoundError if the instance is not in the store."""
        return await load_connection(self.control_plane, self.store.get(instance_id))

    def copy(self, text: str) -> None:
        copy_to_clipboard(self.clipboard, text, self.notifier)

    def metrics(self) -> bytes:
        """Prometheus text exposition of the controller metrics."""
        return get_metrics_text()
