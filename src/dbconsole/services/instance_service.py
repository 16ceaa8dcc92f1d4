"""Read-side helpers over the instance collection.

Listing filters, dashboard statistics and connection details. Pure
functions over Instance snapshots except copy_to_clipboard() and
load_connection(), which touch a sink or the control plane.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from dbconsole.core.domain import DATABASE_OPTIONS, InstanceStatus
from dbconsole.core.errors import ConsoleError
from dbconsole.core.interfaces import Clipboard, ControlPlane, Notifier
from dbconsole.core.models import ConnectionInfo, Instance

logger = logging.getLogger(__name__)

ALL = "all"
RECENT_LIMIT = 5
HOST_PLACEHOLDER = "IP_ADDRESS"


def filter_instances(
    instances: Iterable[Instance],
    search: str = "",
    status: InstanceStatus | str = ALL,
    database_type: str = ALL,
) -> list[Instance]:
    """Instances matching every filter, in input order.

    `search` is a case-insensitive substring over name and database type.
    "all" disables the status and database type filters.
    """
    needle = search.strip().lower()
    result = []
    for instance in instances:
        if needle and not (
            needle in instance.name.lower() or needle in instance.database_type.lower()
        ):
            continue
        if status != ALL and instance.status != status:
            continue
        if database_type != ALL and instance.database_type != database_type:
            continue
        result.append(instance)
    return result


@dataclass(frozen=True)
class DashboardStats:
    total: int
    running: int
    stopped: int
    total_users: int


def dashboard_stats(instances: Iterable[Instance]) -> DashboardStats:
    instances = list(instances)
    return DashboardStats(
        total=len(instances),
        running=sum(1 for i in instances if i.status == InstanceStatus.RUNNING),
        stopped=sum(1 for i in instances if i.status == InstanceStatus.STOPPED),
        total_users=sum(i.user_count or 0 for i in instances),
    )


def recent_instances(instances: Iterable[Instance], limit: int = RECENT_LIMIT) -> list[Instance]:
    """First `limit` instances in server order (dashboard list)."""
    return list(instances)[:limit]


# =============================================================================
# Connection details
# =============================================================================


@dataclass(frozen=True)
class ConnectionDetails:
    host: str | None
    port: int | None
    connection_string: str


def resolve_host(instance: Instance, connection: ConnectionInfo | None = None) -> str | None:
    """Public IP, falling back to the host reported by the connection endpoint."""
    public_ip = instance.network_config.public_ip if instance.network_config else None
    return public_ip or (connection.host if connection else None)


def resolve_port(instance: Instance, connection: ConnectionInfo | None = None) -> int | None:
    if connection and connection.port:
        return connection.port
    if instance.database_port:
        return instance.database_port
    option = DATABASE_OPTIONS.get(instance.database_type)
    return option.default_port if option else None


def connection_string(instance: Instance, connection: ConnectionInfo | None = None) -> str:
    """Example client URL; the password is never known to the console."""
    host = resolve_host(instance, connection) or HOST_PLACEHOLDER
    port = resolve_port(instance, connection)
    return (
        f"{instance.database_type}://{instance.master_username}:password"
        f"@{host}:{port}/postgres"
    )


def connection_details(
    instance: Instance, connection: ConnectionInfo | None = None
) -> ConnectionDetails:
    return ConnectionDetails(
        host=resolve_host(instance, connection),
        port=resolve_port(instance, connection),
        connection_string=connection_string(instance, connection),
    )


async def load_connection(
    control_plane: ControlPlane, instance: Instance
) -> ConnectionDetails:
    """Fetch the connection endpoint and resolve details.

    A failed request is not surfaced: details fall back to what the
    instance itself carries.
    """
    try:
        connection = await control_plane.get_connection(instance.instance_id)
    except ConsoleError as exc:
        logger.warning(
            "Failed to fetch connection info: %s",
            exc.message,
            extra={"instance_id": instance.instance_id, "error_code": exc.code.value},
        )
        connection = None
    return connection_details(instance, connection)


def copy_to_clipboard(clipboard: Clipboard, text: str, notifier: Notifier | None = None) -> None:
    clipboard.write(text)
    if notifier:
        notifier.success("Copied to clipboard")
