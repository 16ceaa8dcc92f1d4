"""Database user management for one instance.

Create/update/delete go to /api/database/{id}/users. Every successful
mutation reloads the list so the view reflects server state. Deletion
confirmation is the caller's job.
"""

import logging
from collections.abc import Iterable

from dbconsole.core.domain import DATABASE_PRIVILEGES
from dbconsole.core.errors import ConsoleError, ValidationError
from dbconsole.core.interfaces import ControlPlane, Notifier
from dbconsole.core.logging_schema import Component, LogEvent
from dbconsole.core.models import DatabaseUser, Outcome

logger = logging.getLogger(__name__)


def validate_username(username: str) -> str | None:
    if not username:
        return "Username is required"
    if len(username) < 3:
        return "Username must be at least 3 characters"
    return None


def validate_password(password: str | None, *, required: bool = True) -> str | None:
    if not password:
        return "Password is required" if required else None
    if len(password) < 8:
        return "Password must be at least 8 characters"
    return None


def validate_privileges(privileges: Iterable[str]) -> str | None:
    unknown = [p for p in privileges if p not in DATABASE_PRIVILEGES]
    if unknown:
        return f"Unknown privileges: {', '.join(unknown)}"
    return None


class DatabaseUserManager:
    """Users of one database instance."""

    def __init__(
        self,
        instance_id: str,
        control_plane: ControlPlane,
        notifier: Notifier | None = None,
    ) -> None:
        self._instance_id = instance_id
        self._control_plane = control_plane
        self._notifier = notifier
        self._users: list[DatabaseUser] = []
        self._loaded = False

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def users(self) -> list[DatabaseUser]:
        return list(self._users)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self) -> Outcome[list[DatabaseUser]]:
        try:
            users = await self._control_plane.list_users(self._instance_id)
        except ConsoleError as exc:
            self._log_failure("list", exc)
            self._notify_error("Failed to load database users")
            return Outcome.failure(exc)
        self._users = list(users)
        self._loaded = True
        return Outcome.success(self.users)

    async def create_user(
        self,
        username: str,
        password: str,
        privileges: Iterable[str] = (),
    ) -> Outcome[list[DatabaseUser]]:
        privileges = list(privileges)
        errors = self._collect(
            username=validate_username(username),
            password=validate_password(password),
            privileges=validate_privileges(privileges),
        )
        if errors:
            return Outcome.failure(ValidationError(errors))

        payload = {"username": username, "password": password, "privileges": privileges}
        try:
            await self._control_plane.create_user(self._instance_id, payload)
        except ConsoleError as exc:
            self._log_failure("create", exc, username)
            self._notify_error("Failed to create user")
            return Outcome.failure(exc)

        return await self._after_change("created", username)

    async def update_user(
        self,
        username: str,
        *,
        password: str | None = None,
        privileges: Iterable[str] | None = None,
    ) -> Outcome[list[DatabaseUser]]:
        """Update password and/or privileges. Password is optional here."""
        payload: dict = {}
        errors = self._collect(password=validate_password(password, required=False))
        if password:
            payload["password"] = password
        if privileges is not None:
            privileges = list(privileges)
            message = validate_privileges(privileges)
            if message:
                errors["privileges"] = message
            payload["privileges"] = privileges
        if errors:
            return Outcome.failure(ValidationError(errors))

        try:
            await self._control_plane.update_user(self._instance_id, username, payload)
        except ConsoleError as exc:
            self._log_failure("update", exc, username)
            self._notify_error("Failed to update user")
            return Outcome.failure(exc)

        return await self._after_change("updated", username)

    async def delete_user(self, username: str) -> Outcome[list[DatabaseUser]]:
        try:
            await self._control_plane.delete_user(self._instance_id, username)
        except ConsoleError as exc:
            self._log_failure("delete", exc, username)
            self._notify_error("Failed to delete user")
            return Outcome.failure(exc)

        return await self._after_change("deleted", username)

    async def _after_change(self, verb: str, username: str) -> Outcome[list[DatabaseUser]]:
        logger.info(
            "User %s",
            verb,
            extra={
                "event": LogEvent.USER_CHANGED,
                "component": Component.USERS,
                "instance_id": self._instance_id,
                "username": username,
            },
        )
        if self._notifier:
            self._notifier.success(f"User {verb} successfully")
        # A failed reload already notified; the mutation itself succeeded
        reloaded = await self.load()
        return Outcome.success(reloaded.value if reloaded.ok else self.users)

    @staticmethod
    def _collect(**messages: str | None) -> dict[str, str]:
        return {name: message for name, message in messages.items() if message}

    def _notify_error(self, message: str) -> None:
        if self._notifier:
            self._notifier.error(message)

    def _log_failure(
        self, operation: str, exc: ConsoleError, username: str | None = None
    ) -> None:
        logger.warning(
            "User %s failed: %s",
            operation,
            exc.message,
            extra={
                "event": LogEvent.USER_OPERATION_FAILED,
                "component": Component.USERS,
                "instance_id": self._instance_id,
                "username": username,
                "error_code": exc.code.value,
            },
        )
