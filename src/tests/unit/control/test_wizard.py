"""Tests for CreateInstanceWizard."""

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from dbconsole.control.store import InstanceStore
from dbconsole.control.wizard import (
    CreateInstanceWizard,
    FieldStatus,
    WizardStep,
    validate_master_password,
)
from dbconsole.core.errors import (
    ActionInProgressError,
    FetchError,
    InvalidTransitionError,
    RemoteRequestError,
    ValidationError,
)

VALID_PASSWORD = "Passw0rd!"


@pytest_asyncio.fixture
async def store(control_plane: AsyncMock):
    store = InstanceStore(control_plane, max_retries=0)
    yield store
    await store.close()


@pytest.fixture
def wizard(control_plane, store, notifier, navigator) -> CreateInstanceWizard:
    return CreateInstanceWizard(control_plane, store, notifier, navigator)


def fill_to_review(wizard: CreateInstanceWizard) -> None:
    wizard.set_field("name", "orders-db")
    assert wizard.advance().ok
    wizard.set_field("instance_type", "t3.small")
    assert wizard.advance().ok
    wizard.set_field("master_password", VALID_PASSWORD)
    assert wizard.advance().ok
    assert wizard.step == WizardStep.REVIEW


class TestDefaults:
    """Initial draft."""

    def test_initial_state(self, wizard) -> None:
        """Starts at step 1 with engine, version, size and username defaults."""
        assert wizard.step == WizardStep.DATABASE_CONFIGURATION
        assert wizard.title == "Database Configuration"
        assert wizard.values == {
            "name": "",
            "database_type": "postgresql",
            "database_version": "13",
            "instance_type": "t3.micro",
            "master_username": "dbadmin",
            "master_password": "",
        }
        assert wizard.field_state("name").status == FieldStatus.UNTOUCHED


class TestValidation:
    """Field rules and step gating."""

    def test_short_name_blocks_advance(self, wizard) -> None:
        """Name "ab" fails and the wizard stays on step 1."""
        wizard.set_field("name", "ab")

        outcome = wizard.advance()

        assert isinstance(outcome.error, ValidationError)
        assert outcome.error.errors == {"name": "Name must be at least 3 characters"}
        assert wizard.step == WizardStep.DATABASE_CONFIGURATION
        assert wizard.field_state("name").status == FieldStatus.INVALID

    @pytest.mark.parametrize(
        "name,message",
        [
            ("", "Instance name is required"),
            ("my_db", "Name can only contain letters, numbers, and hyphens"),
            ("my db", "Name can only contain letters, numbers, and hyphens"),
        ],
    )
    def test_name_rules(self, wizard, name, message) -> None:
        """Each name rule reports its message."""
        assert wizard.set_field("name", name) == message

    def test_valid_name(self, wizard) -> None:
        """Letters, digits and hyphens pass."""
        assert wizard.set_field("name", "Orders-DB-01") is None
        assert wizard.field_state("name").status == FieldStatus.VALID

    def test_untouched_empty_name_fails_on_advance(self, wizard) -> None:
        """advance() validates fields the user never touched."""
        outcome = wizard.advance()
        assert outcome.error.errors == {"name": "Instance name is required"}

    @pytest.mark.parametrize(
        "password,message",
        [
            ("", "Master password is required"),
            ("Pa1!", "Password must be at least 8 characters"),
            ("password1!", "Password must contain uppercase, lowercase, number, and special character"),
            ("Password!", "Password must contain uppercase, lowercase, number, and special character"),
            ("Password1", "Password must contain uppercase, lowercase, number, and special character"),
            ("#Passw0rd!", "Password must contain uppercase, lowercase, number, and special character"),
            (VALID_PASSWORD, None),
            ("Passw0rd!#", None),
        ],
    )
    def test_password_rules(self, password, message) -> None:
        """Password needs length and all four character classes."""
        assert validate_master_password(password, {}) == message

    def test_short_username(self, wizard) -> None:
        """Master username needs 3 characters."""
        assert wizard.set_field("master_username", "db") == "Username must be at least 3 characters"

    def test_unknown_field(self, wizard) -> None:
        """Unknown fields raise KeyError."""
        with pytest.raises(KeyError):
            wizard.set_field("port", "5432")


class TestDerivedVersion:
    """database_version follows database_type."""

    def test_switch_to_mysql_resets_version(self, wizard) -> None:
        """Selecting mysql after postgresql resets the version to 8.0."""
        wizard.set_field("database_version", "15")

        wizard.set_field("database_type", "mysql")

        assert wizard.values["database_version"] == "8.0"
        assert wizard.available_versions() == ("8.0", "5.7")

    def test_same_type_keeps_version(self, wizard) -> None:
        """Re-selecting the current type keeps the chosen version."""
        wizard.set_field("database_version", "15")

        wizard.set_field("database_type", "postgresql")

        assert wizard.values["database_version"] == "15"

    def test_version_must_belong_to_engine(self, wizard) -> None:
        """A version of another engine is rejected."""
        assert wizard.set_field("database_version", "8.0") is not None


class TestNavigation:
    """advance/retreat."""

    def test_retreat_does_not_validate(self, wizard) -> None:
        """retreat() always works and never goes below step 1."""
        wizard.set_field("name", "orders-db")
        wizard.advance()
        wizard.set_field("instance_type", "")

        assert wizard.retreat() == WizardStep.DATABASE_CONFIGURATION
        assert wizard.retreat() == WizardStep.DATABASE_CONFIGURATION

    def test_advance_past_review(self, wizard) -> None:
        """advance() at step 4 is an invalid transition."""
        fill_to_review(wizard)
        assert isinstance(wizard.advance().error, InvalidTransitionError)

    def test_summary_masks_password(self, wizard) -> None:
        """The review summary never shows the password."""
        fill_to_review(wizard)

        summary = wizard.summary()

        assert summary["name"] == "orders-db"
        assert summary["database"] == "PostgreSQL 13"
        assert summary["port"] == "5432"
        assert summary["price"] == "$19.99/month"
        assert summary["master_password"] == "*" * len(VALID_PASSWORD)
        assert summary["region"] == "ap-south-1"
        assert wizard.title == "Review & Create"


class TestSubmit:
    """Creation request."""

    @pytest.mark.asyncio
    async def test_submit_success(
        self, wizard, control_plane, store, notifier, navigator, make_instance
    ) -> None:
        """Valid input creates once, clears the draft and returns to step 1."""
        created = make_instance("i-new", "pending", name="orders-db")
        control_plane.create_instance.return_value = created
        fill_to_review(wizard)

        outcome = await wizard.submit()

        assert outcome.ok is True
        control_plane.create_instance.assert_awaited_once_with(
            {
                "name": "orders-db",
                "databaseType": "postgresql",
                "databaseVersion": "13",
                "instanceType": "t3.small",
                "masterUsername": "dbadmin",
                "masterPassword": VALID_PASSWORD,
            }
        )
        assert wizard.step == WizardStep.DATABASE_CONFIGURATION
        assert wizard.values["name"] == ""
        assert store.contains("i-new")
        assert notifier.successes == ["Instance creation started! This may take a few minutes."]
        assert navigator.paths == ["/instances"]

    @pytest.mark.asyncio
    async def test_submit_before_review(self, wizard, control_plane) -> None:
        """submit() outside step 4 makes no remote call."""
        wizard.set_field("name", "orders-db")

        outcome = await wizard.submit()

        assert isinstance(outcome.error, InvalidTransitionError)
        control_plane.create_instance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remote_message_shown(self, wizard, control_plane, notifier) -> None:
        """A rejected creation shows the server message and keeps the draft."""
        error = RemoteRequestError("Instance quota exceeded")
        error.remote_message = "Instance quota exceeded"
        control_plane.create_instance.side_effect = error
        fill_to_review(wizard)

        outcome = await wizard.submit()

        assert outcome.error is error
        assert wizard.step == WizardStep.REVIEW
        assert wizard.values["name"] == "orders-db"
        assert wizard.values["master_password"] == VALID_PASSWORD
        assert notifier.errors == ["Instance quota exceeded"]

    @pytest.mark.asyncio
    async def test_generic_failure_message(self, wizard, control_plane, notifier) -> None:
        """Failures without a server message use the generic text."""
        control_plane.create_instance.side_effect = FetchError()
        fill_to_review(wizard)

        await wizard.submit()

        assert notifier.errors == ["Failed to create instance"]
        assert wizard.submitting is False

    @pytest.mark.asyncio
    async def test_double_submit_rejected(self, wizard, control_plane) -> None:
        """A second submit while the first is in flight is rejected."""
        gate = asyncio.Event()

        async def slow_create(request):
            await gate.wait()
            return None

        control_plane.create_instance.side_effect = slow_create
        fill_to_review(wizard)

        first = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0)
        second = await wizard.submit()
        gate.set()
        await first

        assert isinstance(second.error, ActionInProgressError)
        assert control_plane.create_instance.await_count == 1

    @pytest.mark.asyncio
    async def test_submit_revalidates(self, wizard, control_plane) -> None:
        """Fields edited after passing their step are checked again."""
        fill_to_review(wizard)
        wizard.draft.values["name"] = "x"

        outcome = await wizard.submit()

        assert isinstance(outcome.error, ValidationError)
        assert "name" in outcome.error.errors
        control_plane.create_instance.assert_not_awaited()
