"""Shared data types for the UHost driver."""

from dataclasses import dataclass
from enum import Enum


class InstanceStatus(Enum):
    """Canonical instance status, independent of provider wording."""

    UNKNOWN = "Unknown"
    STARTING = "Starting"
    RUNNING = "Running"
    STOPPED = "Stopped"
    STOPPING = "Stopping"
    ERROR = "Error"


# Provider state string -> canonical status. Anything missing maps to UNKNOWN.
STATUS_MAP = {
    "Initializing": InstanceStatus.STARTING,
    "Starting": InstanceStatus.STARTING,
    "Rebooting": InstanceStatus.STARTING,
    "Running": InstanceStatus.RUNNING,
    "Stopped": InstanceStatus.STOPPED,
    "Stopping": InstanceStatus.STOPPING,
    "Install Fail": InstanceStatus.ERROR,
}


def map_status(raw_state):
    """Translate a UHost state string into an InstanceStatus."""
    return STATUS_MAP.get(raw_state, InstanceStatus.UNKNOWN)


@dataclass
class InstanceHandle:
    """Identifies the remote UHost owned by one driver."""

    region: str
    instance_id: str = ""

    def clear(self):
        self.instance_id = ""


@dataclass
class KeyPairRecord:
    """SSH key pair used to reach the instance once it is running."""

    public_key_material: str
    private_key_path: str


@dataclass
class NetworkInfo:
    """Addresses and security group attached during provisioning."""

    private_ip: str
    public_ip: str | None = None
    security_group_id: int = 0

    @property
    def address(self) -> str:
        """Address used for SSH and the docker URL (public IP preferred)."""
        return self.public_ip or self.private_ip


@dataclass
class InstanceDescription:
    """Subset of DescribeUHostInstance output the driver cares about."""

    instance_id: str
    raw_state: str
    private_ip: str = ""
    public_ip: str = ""

    @property
    def status(self) -> InstanceStatus:
        return map_status(self.raw_state)
