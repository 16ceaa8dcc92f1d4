"""Instance models as exchanged with the control plane.

Wire format uses camelCase keys (instanceId, databaseType, ...). Models
accept both the wire alias and the Python field name.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dbconsole.core.domain import ActionKind, InstanceStatus


class WireModel(BaseModel):
    """Base model for camelCase wire payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class NetworkConfig(WireModel):
    """Addresses assigned once provisioning completes."""

    public_ip: str | None = None
    private_ip: str | None = None


class Instance(WireModel):
    """One hosted database deployment."""

    instance_id: str
    name: str
    database_type: str
    database_version: str
    instance_type: str = ""
    status: InstanceStatus = InstanceStatus.PENDING
    network_config: NetworkConfig | None = None
    master_username: str = ""
    created_at: datetime | None = None
    region: str | None = None
    user_count: int = 0
    database_port: int | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        # Statuses the console does not know are shown as error
        if isinstance(value, str):
            normalized = value.lower()
            if normalized in InstanceStatus._value2member_map_:
                return normalized
            return InstanceStatus.ERROR
        return value

    @field_validator("instance_type", "master_username", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("user_count", mode="before")
    @classmethod
    def _none_to_zero(cls, value: object) -> object:
        return 0 if value is None else value

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ConnectionInfo(WireModel):
    """Connection endpoint reported by the control plane."""

    host: str | None = None
    port: int | None = None


class DatabaseUser(WireModel):
    """Database account on an instance."""

    username: str
    privileges: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


@dataclass(frozen=True)
class PendingAction:
    """In-flight lifecycle request. At most one per instance."""

    instance_id: str
    kind: ActionKind
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
