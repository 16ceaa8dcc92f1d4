"""HTTP client for the remote control plane.

Implements the ControlPlane interface over the console REST API and
translates transport failures into ConsoleError subclasses:

- network error / timeout / 5xx -> FetchError
- 404 -> InstanceNotFoundError
- 409 -> StateConflictError
- other 4xx -> RemoteRequestError (message taken from the error body)
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from dbconsole.app.metrics.collector import (
    REMOTE_REQUEST_DURATION,
    REMOTE_REQUESTS_TOTAL,
)
from dbconsole.core.circuit_breaker import get_circuit_breaker
from dbconsole.core.domain import LogType
from dbconsole.core.errors import (
    ConsoleError,
    ErrorResponse,
    FetchError,
    InstanceNotFoundError,
    RemoteRequestError,
    StateConflictError,
)
from dbconsole.core.interfaces import ControlPlane, SessionProvider
from dbconsole.core.logging_schema import Component, LogEvent
from dbconsole.core.models import ConnectionInfo, DatabaseUser, Instance, LogEntry
from dbconsole.core.retryable import classify_error

logger = logging.getLogger(__name__)

CIRCUIT_NAME = "control-plane"


@dataclass
class ControlPlaneClientConfig:
    """Control plane connection configuration."""

    endpoint: str
    token: str = ""
    timeout: float = 30.0
    download_timeout: float = 120.0


M = TypeVar("M", bound=BaseModel)


def _json(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError as exc:
        raise FetchError("Malformed control plane response") from exc
    return data if isinstance(data, dict) else {}


def _parse(model: type[M], payload: Any) -> M:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise FetchError("Malformed control plane response") from exc


def _parse_items(model: type[M], items: Any, operation: str) -> list[M]:
    """Validate list items one by one; malformed items are logged and skipped."""
    parsed = []
    for item in items or []:
        try:
            parsed.append(model.model_validate(item))
        except PydanticValidationError as exc:
            logger.warning(
                "Skipping malformed %s item: %d validation errors",
                model.__name__,
                exc.error_count(),
                extra={"component": Component.CLIENT, "operation": operation},
            )
    return parsed


def error_from_response(resp: httpx.Response) -> ConsoleError:
    """Build the ConsoleError matching an error response."""
    message: str | None = None
    try:
        message = ErrorResponse.model_validate(resp.json()).error.message
    except (ValueError, PydanticValidationError):
        pass

    status = resp.status_code
    error: ConsoleError
    if status == 404:
        error = InstanceNotFoundError(message or "Instance not found")
    elif status == 409:
        error = StateConflictError(message or "Instance state conflict")
    elif status >= 500 or status == 429:
        error = FetchError(message or f"Control plane returned {status}")
    else:
        error = RemoteRequestError(message or f"Request rejected ({status})", status)
    error.remote_message = message
    return error


class HttpControlPlane(ControlPlane):
    """HTTP client for the control plane API."""

    def __init__(
        self,
        config: ControlPlaneClientConfig,
        session: SessionProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._session = session
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with the session bearer token."""
        headers = {"Content-Type": "application/json"}
        token = self._session.token() if self._session else None
        token = token or self._config.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.endpoint,
                timeout=self._config.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        method: Literal["get", "post", "put", "delete"],
        path: str,
        *,
        operation: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make HTTP request through the circuit breaker.

        Args:
            method: HTTP method.
            path: URL path.
            operation: Operation label for metrics and logs.
            **kwargs: Additional arguments for httpx request.

        Returns:
            Successful (2xx) response.

        Raises:
            ConsoleError: Translated failure.
        """
        client = await self._get_client()
        cb = get_circuit_breaker(CIRCUIT_NAME, error_classifier=classify_error)
        kwargs.setdefault("headers", self._get_headers())

        async def send() -> httpx.Response:
            resp = await client.request(method.upper(), path, **kwargs)
            resp.raise_for_status()
            return resp

        started = time.monotonic()
        result = "failure"
        try:
            resp = await cb.call(send)
            result = "success"
            return resp
        except httpx.HTTPStatusError as exc:
            raise error_from_response(exc.response) from exc
        except httpx.TimeoutException as exc:
            logger.warning(
                "Control plane request timed out",
                extra={
                    "event": LogEvent.REQUEST_FAILED,
                    "component": Component.CLIENT,
                    "operation": operation,
                    "path": path,
                },
            )
            raise FetchError("Control plane request timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Control plane request failed: %s",
                exc,
                extra={
                    "event": LogEvent.REQUEST_FAILED,
                    "component": Component.CLIENT,
                    "operation": operation,
                    "path": path,
                },
            )
            raise FetchError("Control plane unreachable") from exc
        finally:
            duration = time.monotonic() - started
            REMOTE_REQUESTS_TOTAL.labels(operation=operation, result=result).inc()
            REMOTE_REQUEST_DURATION.labels(operation=operation).observe(duration)
            logger.debug(
                "%s %s -> %s",
                method.upper(),
                path,
                result,
                extra={
                    "event": LogEvent.REQUEST_COMPLETE,
                    "component": Component.CLIENT,
                    "duration_ms": round(duration * 1000, 1),
                },
            )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Instances
    # =========================================================================

    async def list_instances(self) -> list[Instance]:
        resp = await self._request("get", "/api/ec2/list", operation="list_instances")
        data = _json(resp)
        return _parse_items(Instance, data.get("instances"), "list_instances")

    async def get_instance(self, instance_id: str) -> Instance:
        resp = await self._request(
            "get", f"/api/ec2/{instance_id}", operation="get_instance"
        )
        data = _json(resp)
        if not data.get("instance"):
            raise InstanceNotFoundError()
        return _parse(Instance, data["instance"])

    async def create_instance(self, request: dict) -> Instance | None:
        resp = await self._request(
            "post", "/api/ec2/create", operation="create_instance", json=request
        )
        # Creation is accepted asynchronously; an empty body is valid
        if not resp.content:
            return None
        instance = _json(resp).get("instance")
        if not instance:
            return None
        created = _parse(Instance, instance)
        logger.info("Creation accepted: %s", created.instance_id)
        return created

    async def start_instance(self, instance_id: str) -> None:
        await self._request(
            "post", f"/api/ec2/{instance_id}/start", operation="start_instance"
        )

    async def stop_instance(self, instance_id: str) -> None:
        await self._request(
            "post", f"/api/ec2/{instance_id}/stop", operation="stop_instance"
        )

    async def terminate_instance(self, instance_id: str) -> None:
        await self._request(
            "delete", f"/api/ec2/{instance_id}", operation="terminate_instance"
        )

    async def get_connection(self, instance_id: str) -> ConnectionInfo:
        resp = await self._request(
            "get", f"/api/database/{instance_id}/connection", operation="get_connection"
        )
        return _parse(ConnectionInfo, _json(resp))

    # =========================================================================
    # Database users
    # =========================================================================

    async def list_users(self, instance_id: str) -> list[DatabaseUser]:
        resp = await self._request(
            "get", f"/api/database/{instance_id}/users", operation="list_users"
        )
        data = _json(resp)
        return _parse_items(DatabaseUser, data.get("users"), "list_users")

    async def create_user(self, instance_id: str, payload: dict) -> None:
        await self._request(
            "post",
            f"/api/database/{instance_id}/users",
            operation="create_user",
            json=payload,
        )

    async def update_user(self, instance_id: str, username: str, payload: dict) -> None:
        await self._request(
            "put",
            f"/api/database/{instance_id}/users/{quote(username, safe='')}",
            operation="update_user",
            json=payload,
        )

    async def delete_user(self, instance_id: str, username: str) -> None:
        await self._request(
            "delete",
            f"/api/database/{instance_id}/users/{quote(username, safe='')}",
            operation="delete_user",
        )

    # =========================================================================
    # Logs
    # =========================================================================

    @staticmethod
    def _logs_path(instance_id: str, log_type: LogType) -> str:
        if log_type == LogType.ALL:
            return f"/api/logs/{instance_id}"
        return f"/api/logs/{instance_id}/{log_type.value}"

    async def fetch_logs(
        self,
        instance_id: str,
        log_type: LogType = LogType.ALL,
        lines: int = 100,
        start_time: datetime | None = None,
    ) -> list[LogEntry]:
        params: dict[str, Any] = {"lines": lines}
        if start_time is not None:
            params["startTime"] = start_time.isoformat()
        resp = await self._request(
            "get",
            self._logs_path(instance_id, log_type),
            operation="fetch_logs",
            params=params,
        )
        data = _json(resp)
        return [
            _parse(LogEntry, item)
            for item in data.get("logs") or []
            if isinstance(item, dict)
        ]

    async def download_logs(self, instance_id: str) -> AsyncIterator[bytes]:
        """Stream the raw log file (not retried, not circuit-guarded)."""
        client = await self._get_client()
        try:
            async with client.stream(
                "GET",
                self._logs_path(instance_id, LogType.ALL),
                params={"format": "download"},
                headers=self._get_headers(),
                timeout=self._config.download_timeout,
            ) as resp:
                if resp.is_error:
                    await resp.aread()
                    raise error_from_response(resp)
                async for chunk in resp.aiter_bytes():
                    yield chunk
        except httpx.TimeoutException as exc:
            raise FetchError("Log download timed out") from exc
        except httpx.HTTPError as exc:
            raise FetchError("Log download failed") from exc
