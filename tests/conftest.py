"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys

import pytest

from ucloudmachine.provisioning.config import ProvisioningConfig
from ucloudmachine.provisioning.driver import new_driver
from ucloudmachine.provisioning.types import InstanceDescription, KeyPairRecord, NetworkInfo

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the ucloudmachine CLI as a subprocess.

    UCLOUD_* variables from the caller's shell are dropped so tests see
    only what they pass in *env*.
    """

    def _run(*args, env=None):
        base_env = {k: v for k, v in os.environ.items() if not k.startswith("UCLOUD_")}
        result = subprocess.run(
            [sys.executable, "-m", "ucloudmachine.ucloudmachine", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env={**base_env, **(env or {})},
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Fake remote client ──────────────────────────────────────────────


class FakeUCloudClient:
    """In-memory stand-in for UCloudClient that records every call.

    ``states`` is consumed one entry per describe call; the last entry
    repeats forever. An entry that is an exception is raised instead.
    ``failures`` maps a method name to the exception it should raise.
    """

    def __init__(self, states=("Running",), instance_id="uhost-1", network=None, failures=None):
        self.states = list(states)
        self.instance_id = instance_id
        self.network = network or NetworkInfo(private_ip="10.9.0.5", public_ip="106.75.1.2", security_group_id=42)
        self.failures = dict(failures or {})
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def call_names(self):
        return [name for name, _ in self.calls]

    def count(self, name):
        return self.call_names().count(name)

    def create_key_pair(self, config):
        self._record("create_key_pair", config)
        return KeyPairRecord(public_key_material="ssh-rsa AAAAtest test@host", private_key_path=config.ssh_key_path)

    def create_instance(self, config):
        self._record("create_instance", config)
        return self.instance_id

    def describe_instance(self, config, instance_id):
        self._record("describe_instance", config, instance_id)
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        if isinstance(state, Exception):
            raise state
        return InstanceDescription(instance_id=instance_id, raw_state=state, private_ip=self.network.private_ip)

    def create_network(self, config, instance_id):
        self._record("create_network", config, instance_id)
        return self.network

    def upload_key_pair(self, config, instance_id, key_pair, host):
        self._record("upload_key_pair", config, instance_id, key_pair, host)

    def start_instance(self, config, instance_id):
        self._record("start_instance", config, instance_id)

    def stop_instance(self, config, instance_id):
        self._record("stop_instance", config, instance_id)

    def reboot_instance(self, config, instance_id):
        self._record("reboot_instance", config, instance_id)

    def poweroff_instance(self, config, instance_id):
        self._record("poweroff_instance", config, instance_id)

    def terminate_instance(self, config, instance_id):
        self._record("terminate_instance", config, instance_id)


@pytest.fixture
def fake_client():
    return FakeUCloudClient()


@pytest.fixture
def make_fake_client():
    """Factory for FakeUCloudClient with custom states/failures."""
    return FakeUCloudClient


@pytest.fixture
def provisioning_config(tmp_path):
    """A valid config that polls without sleeping."""
    return ProvisioningConfig(
        public_key="test-public-key",
        private_key="test-private-key",
        password="Secret-Passw0rd",
        wait_attempts=3,
        wait_interval=0,
        ssh_key_path=str(tmp_path / "id_rsa"),
    )


@pytest.fixture
def make_driver(provisioning_config, tmp_path):
    """Return a factory building a Driver around a given fake client."""

    def _make(client, **config_overrides):
        config = provisioning_config
        for key, value in config_overrides.items():
            setattr(config, key, value)
        return new_driver("test-machine", store_path=str(tmp_path / "store"), config=config, client=client)

    return _make
