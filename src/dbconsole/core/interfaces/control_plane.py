"""Control plane interface consumed by the lifecycle controller."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from datetime import datetime

from dbconsole.core.domain import LogType
from dbconsole.core.models import ConnectionInfo, DatabaseUser, Instance, LogEntry


class ControlPlane(ABC):
    """Remote source of truth for instances, users and logs.

    Implementations: HttpControlPlane

    Every method is a suspension point. Failures are raised as ConsoleError
    subclasses (FetchError, InstanceNotFoundError, StateConflictError,
    RemoteRequestError).
    """

    # =========================================================================
    # Instances
    # =========================================================================

    @abstractmethod
    async def list_instances(self) -> list[Instance]:
        """List every instance visible to the current user."""
        ...

    @abstractmethod
    async def get_instance(self, instance_id: str) -> Instance:
        """Get one instance.

        Raises:
            InstanceNotFoundError: If the instance no longer exists
        """
        ...

    @abstractmethod
    async def create_instance(self, request: dict) -> Instance | None:
        """Submit a creation request (provisioning continues asynchronously).

        Args:
            request: camelCase wizard payload

        Returns:
            The accepted instance if the control plane echoes one
        """
        ...

    @abstractmethod
    async def start_instance(self, instance_id: str) -> None: ...

    @abstractmethod
    async def stop_instance(self, instance_id: str) -> None: ...

    @abstractmethod
    async def terminate_instance(self, instance_id: str) -> None: ...

    @abstractmethod
    async def get_connection(self, instance_id: str) -> ConnectionInfo:
        """Get the host/port an instance accepts connections on."""
        ...

    # =========================================================================
    # Database users
    # =========================================================================

    @abstractmethod
    async def list_users(self, instance_id: str) -> list[DatabaseUser]: ...

    @abstractmethod
    async def create_user(self, instance_id: str, payload: dict) -> None: ...

    @abstractmethod
    async def update_user(self, instance_id: str, username: str, payload: dict) -> None: ...

    @abstractmethod
    async def delete_user(self, instance_id: str, username: str) -> None: ...

    # =========================================================================
    # Logs
    # =========================================================================

    @abstractmethod
    async def fetch_logs(
        self,
        instance_id: str,
        log_type: LogType = LogType.ALL,
        lines: int = 100,
        start_time: datetime | None = None,
    ) -> list[LogEntry]:
        """Fetch the most recent `lines` entries (oldest first).

        Args:
            instance_id: Instance ID
            log_type: Which log source to read
            lines: Page size
            start_time: Server-side lower bound on entry timestamps
        """
        ...

    @abstractmethod
    def download_logs(self, instance_id: str) -> AsyncIterator[bytes]:
        """Stream the raw log file."""
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
