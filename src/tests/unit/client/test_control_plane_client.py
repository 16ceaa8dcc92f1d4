"""Tests for HttpControlPlane over httpx.MockTransport."""

import json
from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest

from dbconsole.client import ControlPlaneClientConfig, HttpControlPlane
from dbconsole.core.circuit_breaker import CircuitOpenError
from dbconsole.core.domain import InstanceStatus, LogLevel, LogType
from dbconsole.core.errors import (
    FetchError,
    InstanceNotFoundError,
    RemoteRequestError,
    StateConflictError,
)
from dbconsole.core.interfaces import StaticSession

WIRE_INSTANCE = {
    "instanceId": "i-abc",
    "name": "orders-db",
    "databaseType": "postgresql",
    "databaseVersion": "14",
    "instanceType": "t3.small",
    "status": "running",
    "networkConfig": {"publicIp": "13.0.0.1", "privateIp": "10.0.0.1"},
    "masterUsername": "dbadmin",
    "createdAt": "2024-05-01T12:00:00Z",
    "region": "ap-south-1",
    "userCount": 3,
    "databasePort": 5432,
}


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self._response = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._response(request)


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    session: StaticSession | None = None,
    token: str = "",
) -> HttpControlPlane:
    return HttpControlPlane(
        ControlPlaneClientConfig(endpoint="http://control-plane.test", token=token),
        session=session,
        transport=httpx.MockTransport(handler),
    )


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


class TestInstances:
    """Instance endpoints."""

    @pytest.mark.asyncio
    async def test_list_instances_parses_wire_format(self) -> None:
        """camelCase payloads become Instance models."""
        recorder = Recorder(lambda r: httpx.Response(200, json={"instances": [WIRE_INSTANCE]}))
        client = make_client(recorder)

        instances = await client.list_instances()

        assert recorder.requests[0].method == "GET"
        assert recorder.requests[0].url.path == "/api/ec2/list"
        assert len(instances) == 1
        instance = instances[0]
        assert instance.instance_id == "i-abc"
        assert instance.status == InstanceStatus.RUNNING
        assert instance.network_config.public_ip == "13.0.0.1"
        assert instance.user_count == 3
        assert instance.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        await client.close()

    @pytest.mark.asyncio
    async def test_list_instances_missing_key(self) -> None:
        """A body without `instances` is an empty list."""
        client = make_client(lambda r: httpx.Response(200, json={}))
        assert await client.list_instances() == []

    @pytest.mark.asyncio
    async def test_unknown_status_maps_to_error(self) -> None:
        """Statuses the console does not know are shown as error."""
        payload = dict(WIRE_INSTANCE, status="rebooting")
        client = make_client(lambda r: httpx.Response(200, json={"instances": [payload]}))

        instances = await client.list_instances()

        assert instances[0].status == InstanceStatus.ERROR

    @pytest.mark.asyncio
    async def test_null_optional_fields_use_defaults(self) -> None:
        """Explicit nulls in optional fields fall back to their defaults."""
        payload = dict(WIRE_INSTANCE, userCount=None, instanceType=None, masterUsername=None)
        client = make_client(
            lambda r: httpx.Response(200, json={"instances": [payload, WIRE_INSTANCE]})
        )

        instances = await client.list_instances()

        assert len(instances) == 2
        assert instances[0].user_count == 0
        assert instances[0].instance_type == ""
        assert instances[0].master_username == ""

    @pytest.mark.asyncio
    async def test_malformed_item_skipped(self) -> None:
        """One unparseable instance does not empty the whole list."""
        broken = {"instanceId": "i-broken"}
        client = make_client(
            lambda r: httpx.Response(200, json={"instances": [broken, WIRE_INSTANCE]})
        )

        instances = await client.list_instances()

        assert [i.instance_id for i in instances] == ["i-abc"]

    @pytest.mark.asyncio
    async def test_get_instance_not_found(self) -> None:
        """404 raises InstanceNotFoundError."""
        client = make_client(
            lambda r: httpx.Response(404, json=error_body("NOT_FOUND", "Instance not found"))
        )
        with pytest.raises(InstanceNotFoundError):
            await client.get_instance("i-gone")

    @pytest.mark.asyncio
    async def test_get_instance_empty_body_is_not_found(self) -> None:
        """A 200 without `instance` is treated as not found."""
        client = make_client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(InstanceNotFoundError):
            await client.get_instance("i-abc")

    @pytest.mark.asyncio
    async def test_create_instance_sends_payload(self) -> None:
        """POST /api/ec2/create carries the camelCase request."""
        recorder = Recorder(lambda r: httpx.Response(201, json={"instance": WIRE_INSTANCE}))
        client = make_client(recorder)
        request = {"name": "orders-db", "databaseType": "postgresql"}

        created = await client.create_instance(request)

        sent = recorder.requests[0]
        assert sent.method == "POST"
        assert sent.url.path == "/api/ec2/create"
        assert json.loads(sent.content) == request
        assert created is not None
        assert created.instance_id == "i-abc"

    @pytest.mark.asyncio
    async def test_create_instance_empty_body(self) -> None:
        """Accepted creation without a body returns None."""
        client = make_client(lambda r: httpx.Response(202))
        assert await client.create_instance({"name": "orders-db"}) is None

    @pytest.mark.asyncio
    async def test_create_instance_rejected_keeps_server_message(self) -> None:
        """4xx bodies surface as RemoteRequestError with remote_message."""
        client = make_client(
            lambda r: httpx.Response(400, json=error_body("QUOTA", "Instance quota exceeded"))
        )

        with pytest.raises(RemoteRequestError) as exc_info:
            await client.create_instance({"name": "orders-db"})

        assert exc_info.value.remote_message == "Instance quota exceeded"
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize(
        "method_name,http_method,path",
        [
            ("start_instance", "POST", "/api/ec2/i-abc/start"),
            ("stop_instance", "POST", "/api/ec2/i-abc/stop"),
            ("terminate_instance", "DELETE", "/api/ec2/i-abc"),
        ],
    )
    @pytest.mark.asyncio
    async def test_lifecycle_endpoints(
        self, method_name: str, http_method: str, path: str
    ) -> None:
        """Lifecycle actions hit their endpoints."""
        recorder = Recorder(lambda r: httpx.Response(200, json={}))
        client = make_client(recorder)

        await getattr(client, method_name)("i-abc")

        assert recorder.requests[0].method == http_method
        assert recorder.requests[0].url.path == path

    @pytest.mark.asyncio
    async def test_get_connection(self) -> None:
        """Connection endpoint returns host and port."""
        client = make_client(
            lambda r: httpx.Response(200, json={"host": "db.internal", "port": 5432})
        )
        info = await client.get_connection("i-abc")
        assert info.host == "db.internal"
        assert info.port == 5432


class TestErrorTranslation:
    """Transport failures become ConsoleError subclasses."""

    @pytest.mark.asyncio
    async def test_conflict(self) -> None:
        """409 raises StateConflictError."""
        client = make_client(
            lambda r: httpx.Response(409, json=error_body("CONFLICT", "Instance is stopping"))
        )
        with pytest.raises(StateConflictError) as exc_info:
            await client.stop_instance("i-abc")
        assert exc_info.value.message == "Instance is stopping"

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        """5xx raises FetchError."""
        client = make_client(lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(FetchError) as exc_info:
            await client.list_instances()
        assert exc_info.value.remote_message is None

    @pytest.mark.asyncio
    async def test_connect_error(self) -> None:
        """Network failures raise FetchError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError) as exc_info:
            await make_client(handler).list_instances()
        assert exc_info.value.message == "Control plane unreachable"

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Timeouts raise FetchError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(FetchError) as exc_info:
            await make_client(handler).list_instances()
        assert exc_info.value.message == "Control plane request timed out"

    @pytest.mark.asyncio
    async def test_malformed_json(self) -> None:
        """Non-JSON bodies raise FetchError."""
        client = make_client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(FetchError):
            await client.list_instances()

    @pytest.mark.asyncio
    async def test_outage_opens_circuit(self) -> None:
        """Repeated 5xx open the circuit; later calls never reach the network."""
        recorder = Recorder(lambda r: httpx.Response(503))
        client = make_client(recorder)

        for _ in range(5):
            with pytest.raises(FetchError):
                await client.list_instances()
        with pytest.raises(CircuitOpenError):
            await client.list_instances()

        assert len(recorder.requests) == 5

    @pytest.mark.asyncio
    async def test_not_found_does_not_open_circuit(self) -> None:
        """404s never open the circuit."""
        client = make_client(lambda r: httpx.Response(404))
        for _ in range(10):
            with pytest.raises(InstanceNotFoundError):
                await client.get_instance("i-gone")


class TestAuthorization:
    """Bearer token handling."""

    @pytest.mark.asyncio
    async def test_session_token(self) -> None:
        """The session token is sent as a bearer token."""
        recorder = Recorder(lambda r: httpx.Response(200, json={"instances": []}))
        client = make_client(recorder, session=StaticSession("u-1", "session-token"), token="static")

        await client.list_instances()

        assert recorder.requests[0].headers["Authorization"] == "Bearer session-token"

    @pytest.mark.asyncio
    async def test_static_token_fallback(self) -> None:
        """Without a session token the configured token is used."""
        recorder = Recorder(lambda r: httpx.Response(200, json={"instances": []}))
        client = make_client(recorder, session=StaticSession(), token="static")

        await client.list_instances()

        assert recorder.requests[0].headers["Authorization"] == "Bearer static"

    @pytest.mark.asyncio
    async def test_no_token(self) -> None:
        """No Authorization header without any token."""
        recorder = Recorder(lambda r: httpx.Response(200, json={"instances": []}))

        await make_client(recorder).list_instances()

        assert "Authorization" not in recorder.requests[0].headers


class TestUsers:
    """Database user endpoints."""

    @pytest.mark.asyncio
    async def test_list_users(self) -> None:
        """Users are parsed from the `users` key."""
        client = make_client(
            lambda r: httpx.Response(
                200, json={"users": [{"username": "app", "privileges": ["SELECT"]}]}
            )
        )
        users = await client.list_users("i-abc")
        assert users[0].username == "app"
        assert users[0].privileges == ["SELECT"]

    @pytest.mark.asyncio
    async def test_update_and_delete_paths(self) -> None:
        """Update uses PUT and delete uses DELETE on the user path."""
        recorder = Recorder(lambda r: httpx.Response(200, json={}))
        client = make_client(recorder)

        await client.update_user("i-abc", "app", {"privileges": ["SELECT"]})
        await client.delete_user("i-abc", "app")

        assert [(r.method, r.url.path) for r in recorder.requests] == [
            ("PUT", "/api/database/i-abc/users/app"),
            ("DELETE", "/api/database/i-abc/users/app"),
        ]

    @pytest.mark.asyncio
    async def test_username_is_quoted_in_path(self) -> None:
        """Reserved characters in a username stay inside the path segment."""
        recorder = Recorder(lambda r: httpx.Response(200, json={}))
        client = make_client(recorder)

        await client.delete_user("i-abc", "a/b?c#d")

        request = recorder.requests[0]
        assert request.url.raw_path == b"/api/database/i-abc/users/a%2Fb%3Fc%23d"
        assert request.url.query == b""


class TestLogs:
    """Log endpoints."""

    @pytest.mark.parametrize(
        "log_type,path",
        [
            (LogType.ALL, "/api/logs/i-abc"),
            (LogType.DATABASE, "/api/logs/i-abc/database"),
            (LogType.SYSTEM, "/api/logs/i-abc/system"),
        ],
    )
    @pytest.mark.asyncio
    async def test_fetch_logs_path(self, log_type: LogType, path: str) -> None:
        """The log type selects the endpoint."""
        recorder = Recorder(lambda r: httpx.Response(200, json={"logs": []}))
        await make_client(recorder).fetch_logs("i-abc", log_type=log_type)
        assert recorder.requests[0].url.path == path

    @pytest.mark.asyncio
    async def test_fetch_logs_params_and_parsing(self) -> None:
        """lines and startTime are sent; entries are normalized."""
        recorder = Recorder(
            lambda r: httpx.Response(
                200,
                json={
                    "logs": [
                        {"timestamp": "2024-05-01T12:00:00Z", "level": "WARN",
                         "source": "postgres", "message": "slow query"},
                        {"level": "verbose", "message": None},
                        "not-an-entry",
                    ]
                },
            )
        )
        since = datetime(2024, 5, 1, tzinfo=UTC)

        entries = await make_client(recorder).fetch_logs("i-abc", lines=50, start_time=since)

        params = recorder.requests[0].url.params
        assert params["lines"] == "50"
        assert params["startTime"] == since.isoformat()
        assert len(entries) == 2
        assert entries[0].level == LogLevel.WARNING
        assert entries[1].level == LogLevel.UNKNOWN
        assert entries[1].message == ""

    @pytest.mark.asyncio
    async def test_download_logs_streams_bytes(self) -> None:
        """download_logs yields the raw body."""
        recorder = Recorder(lambda r: httpx.Response(200, content=b"line 1\nline 2\n"))

        chunks = [chunk async for chunk in make_client(recorder).download_logs("i-abc")]

        assert b"".join(chunks) == b"line 1\nline 2\n"
        assert recorder.requests[0].url.params["format"] == "download"

    @pytest.mark.asyncio
    async def test_download_logs_error(self) -> None:
        """Error responses raise before any bytes are yielded."""
        client = make_client(lambda r: httpx.Response(404, json=error_body("NOT_FOUND", "gone")))

        with pytest.raises(InstanceNotFoundError):
            async for _ in client.download_logs("i-gone"):
                pass
