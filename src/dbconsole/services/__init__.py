"""Console services built on top of the control components."""

from dbconsole.services.instance_service import (
    ConnectionDetails,
    DashboardStats,
    connection_details,
    connection_string,
    copy_to_clipboard,
    dashboard_stats,
    filter_instances,
    load_connection,
    recent_instances,
)
from dbconsole.services.user_service import DatabaseUserManager

__all__ = [
    "ConnectionDetails",
    "DashboardStats",
    "DatabaseUserManager",
    "connection_details",
    "connection_string",
    "copy_to_clipboard",
    "dashboard_stats",
    "filter_instances",
    "load_connection",
    "recent_instances",
]
