"""Session capability consumed from the authentication layer."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class SessionProvider(ABC):
    """Opaque "current user + token" capability.

    The console never manages sessions itself; it only asks for the
    bearer token to attach to control plane requests.
    """

    @abstractmethod
    def current_user(self) -> str | None: ...

    @abstractmethod
    def token(self) -> str | None: ...


@dataclass
class StaticSession(SessionProvider):
    """Fixed session, for scripts and tests."""

    user_id: str | None = None
    access_token: str | None = None

    def current_user(self) -> str | None:
        return self.user_id

    def token(self) -> str | None:
        return self.access_token
