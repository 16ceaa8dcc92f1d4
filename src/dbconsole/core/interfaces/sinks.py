"""Side-effect sinks provided by the presentation layer."""

from abc import ABC, abstractmethod


class Notifier(ABC):
    """User-facing notifications (toasts)."""

    @abstractmethod
    def success(self, message: str) -> None: ...

    @abstractmethod
    def error(self, message: str) -> None: ...


class Navigator(ABC):
    """Route changes requested by the controller."""

    @abstractmethod
    def navigate(self, path: str) -> None: ...


class Clipboard(ABC):
    @abstractmethod
    def write(self, text: str) -> None: ...


class FileSink(ABC):
    """Delivers downloaded bytes to the user as a file."""

    @abstractmethod
    def save(self, filename: str, data: bytes) -> None: ...
