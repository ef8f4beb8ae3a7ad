"""Unit tests for provisioning types and the status mapping table."""

import pytest

from ucloudmachine.provisioning.types import (
    InstanceDescription,
    InstanceHandle,
    InstanceStatus,
    NetworkInfo,
    map_status,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Initializing", InstanceStatus.STARTING),
        ("Starting", InstanceStatus.STARTING),
        ("Rebooting", InstanceStatus.STARTING),
        ("Running", InstanceStatus.RUNNING),
        ("Stopped", InstanceStatus.STOPPED),
        ("Stopping", InstanceStatus.STOPPING),
        ("Install Fail", InstanceStatus.ERROR),
    ],
)
def test_map_status_table(raw, expected):
    assert map_status(raw) is expected


@pytest.mark.parametrize("raw", ["", "running", "Resizing", "Install Failed", "Unknown", None])
def test_map_status_unrecognized_is_unknown(raw):
    assert map_status(raw) is InstanceStatus.UNKNOWN


def test_instance_description_status():
    desc = InstanceDescription(instance_id="uhost-1", raw_state="Rebooting")
    assert desc.status is InstanceStatus.STARTING


def test_network_info_prefers_public_ip():
    assert NetworkInfo(private_ip="10.0.0.2", public_ip="1.2.3.4").address == "1.2.3.4"


def test_network_info_private_only():
    net = NetworkInfo(private_ip="10.0.0.2")
    assert net.public_ip is None
    assert net.address == "10.0.0.2"


def test_instance_handle_clear():
    handle = InstanceHandle(region="cn-north-03", instance_id="uhost-1")
    handle.clear()
    assert handle.instance_id == ""
    assert handle.region == "cn-north-03"
