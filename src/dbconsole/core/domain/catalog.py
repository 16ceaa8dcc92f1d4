"""Static catalogs offered by the console: engines, sizing tiers, privileges."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DatabaseOption:
    """Database engine offered in the creation wizard."""

    key: str
    name: str
    versions: tuple[str, ...]
    default_port: int

    @property
    def default_version(self) -> str:
        return self.versions[0]


@dataclass(frozen=True)
class InstanceTypeOption:
    """Sizing tier offered in the creation wizard."""

    type: str
    name: str
    vcpu: str
    memory: str
    price: str
    description: str


DATABASE_OPTIONS: dict[str, DatabaseOption] = {
    "postgresql": DatabaseOption(
        key="postgresql",
        name="PostgreSQL",
        versions=("13", "14", "15"),
        default_port=5432,
    ),
    "mysql": DatabaseOption(
        key="mysql",
        name="MySQL",
        versions=("8.0", "5.7"),
        default_port=3306,
    ),
}

INSTANCE_TYPES: dict[str, InstanceTypeOption] = {
    option.type: option
    for option in (
        InstanceTypeOption(
            type="t3.micro",
            name="Micro",
            vcpu="2 vCPUs",
            memory="1 GB RAM",
            price="$9.99/month",
            description="Perfect for development and testing",
        ),
        InstanceTypeOption(
            type="t3.small",
            name="Small",
            vcpu="2 vCPUs",
            memory="2 GB RAM",
            price="$19.99/month",
            description="Good for small production workloads",
        ),
        InstanceTypeOption(
            type="t3.medium",
            name="Medium",
            vcpu="2 vCPUs",
            memory="4 GB RAM",
            price="$39.99/month",
            description="Ideal for medium-sized applications",
        ),
        InstanceTypeOption(
            type="t3.large",
            name="Large",
            vcpu="2 vCPUs",
            memory="8 GB RAM",
            price="$79.99/month",
            description="For high-performance applications",
        ),
    )
}

DATABASE_PRIVILEGES: tuple[str, ...] = (
    "SELECT",
    "INSERT",
    "UPDATE",
    "DELETE",
    "CREATE",
    "DROP",
    "ALTER",
    "INDEX",
)

DEFAULT_REGION = "ap-south-1"
