"""Control plane clients."""

from dbconsole.client.control_plane import (
    ControlPlaneClientConfig,
    HttpControlPlane,
    error_from_response,
)

__all__ = ["ControlPlaneClientConfig", "HttpControlPlane", "error_from_response"]
