"""UHost provisioning: config, remote client, polling, driver."""

from ucloudmachine.provisioning.config import ProvisioningConfig, build_config, validate_region
from ucloudmachine.provisioning.driver import Driver, new_driver
from ucloudmachine.provisioning.types import (
    InstanceDescription,
    InstanceHandle,
    InstanceStatus,
    KeyPairRecord,
    NetworkInfo,
    map_status,
)
from ucloudmachine.provisioning.ucloud import UCloudClient
from ucloudmachine.provisioning.wait import wait_for

__all__ = [
    "Driver",
    "new_driver",
    "ProvisioningConfig",
    "build_config",
    "validate_region",
    "UCloudClient",
    "wait_for",
    "InstanceDescription",
    "InstanceHandle",
    "InstanceStatus",
    "KeyPairRecord",
    "NetworkInfo",
    "map_status",
]
