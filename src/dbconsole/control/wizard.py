"""Wizard State Machine - the four-step instance creation flow.

Steps:
    1 Database Configuration  name, database_type, database_version
    2 Instance Settings       instance_type
    3 Security & Access       master_username, master_password
    4 Review & Create         (no fields, submit)

advance() validates the current step's fields and only moves forward when
all pass. retreat() never validates. submit() is only reachable from step 4.

database_version is derived from database_type: changing the type resets
the version to that engine's first listed version.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum

from dbconsole.control.store import InstanceStore
from dbconsole.core.domain import DATABASE_OPTIONS, DEFAULT_REGION, INSTANCE_TYPES
from dbconsole.core.errors import (
    ActionInProgressError,
    ConsoleError,
    InvalidTransitionError,
    ValidationError,
)
from dbconsole.core.interfaces import ControlPlane, Navigator, Notifier
from dbconsole.core.logging_schema import Component, LogEvent
from dbconsole.core.models import Instance, Outcome

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")
# Prefix match: only the first character is checked against the allowed set
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]"
)

CREATE_FAILED_MESSAGE = "Failed to create instance"


class WizardStep(IntEnum):
    DATABASE_CONFIGURATION = 1
    INSTANCE_SETTINGS = 2
    SECURITY_ACCESS = 3
    REVIEW = 4


STEP_TITLES = {
    WizardStep.DATABASE_CONFIGURATION: "Database Configuration",
    WizardStep.INSTANCE_SETTINGS: "Instance Settings",
    WizardStep.SECURITY_ACCESS: "Security & Access",
    WizardStep.REVIEW: "Review & Create",
}

STEP_FIELDS: dict[WizardStep, tuple[str, ...]] = {
    WizardStep.DATABASE_CONFIGURATION: ("name", "database_type", "database_version"),
    WizardStep.INSTANCE_SETTINGS: ("instance_type",),
    WizardStep.SECURITY_ACCESS: ("master_username", "master_password"),
    WizardStep.REVIEW: (),
}

DEFAULT_VALUES = {
    "name": "",
    "database_type": "postgresql",
    "database_version": "13",
    "instance_type": "t3.micro",
    "master_username": "dbadmin",
    "master_password": "",
}

_WIRE_NAMES = {
    "name": "name",
    "database_type": "databaseType",
    "database_version": "databaseVersion",
    "instance_type": "instanceType",
    "master_username": "masterUsername",
    "master_password": "masterPassword",
}


class FieldStatus(StrEnum):
    UNTOUCHED = "untouched"
    VALID = "valid"
    INVALID = "invalid"


@dataclass
class FieldState:
    status: FieldStatus = FieldStatus.UNTOUCHED
    message: str | None = None


# =============================================================================
# Field rules (each returns the first failing message, or None)
# =============================================================================


def validate_name(value: str, values: dict[str, str]) -> str | None:
    if not value:
        return "Instance name is required"
    if len(value) < 3:
        return "Name must be at least 3 characters"
    if not NAME_PATTERN.match(value):
        return "Name can only contain letters, numbers, and hyphens"
    return None


def validate_database_type(value: str, values: dict[str, str]) -> str | None:
    if not value:
        return "Database type is required"
    if value not in DATABASE_OPTIONS:
        return f"Unsupported database type: {value}"
    return None


def validate_database_version(value: str, values: dict[str, str]) -> str | None:
    option = DATABASE_OPTIONS.get(values.get("database_type", ""))
    if option is None:
        return "Select a database type first"
    if value not in option.versions:
        return f"Version {value or '(none)'} is not available for {option.name}"
    return None


def validate_instance_type(value: str, values: dict[str, str]) -> str | None:
    if not value:
        return "Instance type is required"
    if value not in INSTANCE_TYPES:
        return f"Unsupported instance type: {value}"
    return None


def validate_master_username(value: str, values: dict[str, str]) -> str | None:
    if not value:
        return "Master username is required"
    if len(value) < 3:
        return "Username must be at least 3 characters"
    return None


def validate_master_password(value: str, values: dict[str, str]) -> str | None:
    if not value:
        return "Master password is required"
    if len(value) < 8:
        return "Password must be at least 8 characters"
    if not PASSWORD_PATTERN.match(value):
        return "Password must contain uppercase, lowercase, number, and special character"
    return None


FIELD_RULES: dict[str, Callable[[str, dict[str, str]], str | None]] = {
    "name": validate_name,
    "database_type": validate_database_type,
    "database_version": validate_database_version,
    "instance_type": validate_instance_type,
    "master_username": validate_master_username,
    "master_password": validate_master_password,
}


@dataclass
class WizardDraft:
    """In-progress creation form."""

    step: WizardStep = WizardStep.DATABASE_CONFIGURATION
    values: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_VALUES))
    fields: dict[str, FieldState] = field(
        default_factory=lambda: {name: FieldState() for name in DEFAULT_VALUES}
    )

    def to_request(self) -> dict[str, str]:
        """camelCase payload for POST /api/ec2/create."""
        return {_WIRE_NAMES[name]: value for name, value in self.values.items()}


class CreateInstanceWizard:
    """Owns one WizardDraft and drives it to submission."""

    def __init__(
        self,
        control_plane: ControlPlane,
        store: InstanceStore | None = None,
        notifier: Notifier | None = None,
        navigator: Navigator | None = None,
    ) -> None:
        self._control_plane = control_plane
        self._store = store
        self._notifier = notifier
        self._navigator = navigator
        self._draft = WizardDraft()
        self._submitting = False

    @property
    def draft(self) -> WizardDraft:
        return self._draft

    @property
    def step(self) -> WizardStep:
        return self._draft.step

    @property
    def title(self) -> str:
        return STEP_TITLES[self._draft.step]

    @property
    def submitting(self) -> bool:
        return self._submitting

    @property
    def values(self) -> dict[str, str]:
        return dict(self._draft.values)

    def field_state(self, name: str) -> FieldState:
        return self._draft.fields[name]

    def available_versions(self) -> tuple[str, ...]:
        option = DATABASE_OPTIONS.get(self._draft.values["database_type"])
        return option.versions if option else ()

    # =========================================================================
    # Field updates
    # =========================================================================

    def set_field(self, name: str, value: str | None) -> str | None:
        """Set a field, validate it, and recompute derived fields.

        Returns:
            The field's validation message, or None if valid.

        Raises:
            KeyError: Unknown field name
        """
        if name not in FIELD_RULES:
            raise KeyError(f"Unknown wizard field: {name}")

        previous = self._draft.values[name]
        self._draft.values[name] = value or ""

        if name == "database_type" and self._draft.values[name] != previous:
            self._recompute_version()

        return self._validate_field(name)

    def _recompute_version(self) -> None:
        option = DATABASE_OPTIONS.get(self._draft.values["database_type"])
        self._draft.values["database_version"] = option.default_version if option else ""
        # Derived value replaced the user's choice: show it as untouched
        self._draft.fields["database_version"] = FieldState()

    def _validate_field(self, name: str) -> str | None:
        message = FIELD_RULES[name](self._draft.values[name], self._draft.values)
        self._draft.fields[name] = FieldState(
            status=FieldStatus.INVALID if message else FieldStatus.VALID,
            message=message,
        )
        return message

    def validate_step(self, step: WizardStep | int) -> dict[str, str]:
        """Validate every field of `step`, updating their states.

        Returns:
            Field name -> message for each failing field.
        """
        errors: dict[str, str] = {}
        for name in STEP_FIELDS[WizardStep(step)]:
            message = self._validate_field(name)
            if message:
                errors[name] = message
        return errors

    # =========================================================================
    # Navigation
    # =========================================================================

    def advance(self) -> Outcome[WizardStep]:
        """Move to the next step if the current one validates."""
        current = self._draft.step
        if current == WizardStep.REVIEW:
            return Outcome.failure(
                InvalidTransitionError("Already at the review step")
            )

        errors = self.validate_step(current)
        if errors:
            logger.info(
                "Step %d validation failed: %s",
                current,
                sorted(errors),
                extra={"event": LogEvent.VALIDATION_FAILED, "component": Component.WIZARD},
            )
            return Outcome.failure(ValidationError(errors))

        self._draft.step = WizardStep(current + 1)
        return Outcome.success(self._draft.step)

    def retreat(self) -> WizardStep:
        """Move back one step (never below step 1, never validates)."""
        if self._draft.step > WizardStep.DATABASE_CONFIGURATION:
            self._draft.step = WizardStep(self._draft.step - 1)
        return self._draft.step

    def reset(self) -> None:
        self._draft = WizardDraft()

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(self) -> Outcome[Instance | None]:
        """Send the creation request (step 4 only).

        On success the draft is cleared and the wizard is back at step 1.
        On failure the wizard stays at step 4 with every value intact.
        """
        if self._submitting:
            return Outcome.failure(
                ActionInProgressError("Instance creation already in progress")
            )
        if self._draft.step != WizardStep.REVIEW:
            return Outcome.failure(
                InvalidTransitionError("Instances can only be created from the review step")
            )

        errors: dict[str, str] = {}
        for step in WizardStep:
            errors.update(self.validate_step(step))
        if errors:
            return Outcome.failure(ValidationError(errors))

        self._submitting = True
        request = self._draft.to_request()
        try:
            created = await self._control_plane.create_instance(request)
        except ConsoleError as exc:
            message = exc.remote_message or CREATE_FAILED_MESSAGE
            logger.warning(
                "Failed to create instance: %s",
                exc.message,
                extra={
                    "event": LogEvent.CREATE_FAILED,
                    "component": Component.WIZARD,
                    "error_code": exc.code.value,
                },
            )
            if self._notifier:
                self._notifier.error(message)
            return Outcome.failure(exc)
        finally:
            self._submitting = False

        logger.info(
            "Creation submitted for %s",
            request["name"],
            extra={"event": LogEvent.CREATE_SUBMITTED, "component": Component.WIZARD},
        )
        self.reset()
        if self._store is not None:
            if created is not None:
                self._store.upsert(created)
            self._store.refresh_in_background()
        if self._notifier:
            self._notifier.success("Instance creation started! This may take a few minutes.")
        if self._navigator:
            self._navigator.navigate("/instances")
        return Outcome.success(created)

    def summary(self) -> dict[str, str]:
        """Review-step view of the draft (password masked)."""
        values = self._draft.values
        database = DATABASE_OPTIONS.get(values["database_type"])
        size = INSTANCE_TYPES.get(values["instance_type"])
        return {
            "name": values["name"],
            "database": (
                f"{database.name} {values['database_version']}" if database else ""
            ),
            "port": str(database.default_port) if database else "",
            "instance_type": (
                f"{size.name} ({size.type}) - {size.vcpu}, {size.memory}" if size else ""
            ),
            "price": size.price if size else "",
            "master_username": values["master_username"],
            "master_password": "*" * len(values["master_password"]),
            "region": DEFAULT_REGION,
        }
