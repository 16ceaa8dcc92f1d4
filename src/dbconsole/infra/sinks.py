"""Default side-effect sinks that write to the standard logger.

Used when the console runs headless (scripts, tests); a UI replaces them
with toast, router, clipboard and download implementations.
"""

import logging
from pathlib import Path

from dbconsole.core.interfaces import Clipboard, FileSink, Navigator, Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    def success(self, message: str) -> None:
        logger.info(message, extra={"notification": "success"})

    def error(self, message: str) -> None:
        logger.warning(message, extra={"notification": "error"})


class LoggingNavigator(Navigator):
    def __init__(self) -> None:
        self.location = "/"

    def navigate(self, path: str) -> None:
        self.location = path
        logger.info("Navigate to %s", path)


class MemoryClipboard(Clipboard):
    def __init__(self) -> None:
        self.text: str | None = None

    def write(self, text: str) -> None:
        self.text = text


class DirectoryFileSink(FileSink):
    """Writes downloads into a local directory."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    def save(self, filename: str, data: bytes) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._directory / Path(filename).name
        path.write_bytes(data)
        logger.info("Saved %d bytes to %s", len(data), path)
