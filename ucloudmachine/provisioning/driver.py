"""UHost driver: provisioning state machine and lifecycle controller.

One Driver owns exactly one UHost. ``create()`` walks the provisioning steps
in order and stops at the first failure, leaving whatever was already created
in place. Cleanup is the caller's job (``remove()``), unless the config opts
into ``rollback_on_failure``.
"""

import dataclasses
import logging
import os

from ucloudmachine.provisioning.config import ProvisioningConfig
from ucloudmachine.provisioning.errors import (
    ConfigurationError,
    InstanceCreateError,
    IPAddressNotSetError,
    KeyPairError,
    KeyPairUploadError,
    LifecycleError,
    MissingInstanceError,
    NetworkError,
    ProvisioningCancelledError,
    ProvisioningError,
    ProvisioningTimeoutError,
    RemoteConnectionError,
    RemoteNotFoundError,
    RemoteProviderError,
    UCloudMachineError,
    WaitCancelledError,
    WaitTimeoutError,
)
from ucloudmachine.provisioning.types import InstanceHandle, InstanceStatus
from ucloudmachine.provisioning.ucloud import DOCKER_PORT, UCloudClient
from ucloudmachine.provisioning.wait import wait_for

logger = logging.getLogger(__name__)

DRIVER_NAME = "ucloud"
DEFAULT_STORE_PATH = "~/.ucloudmachine"


def machine_dir(store_path, machine_name):
    """Directory holding a machine's key pair and saved state."""
    return os.path.join(os.path.expanduser(store_path), "machines", machine_name)


class Driver:
    """Provision and manage a single UHost."""

    def __init__(self, machine_name, store_path, config, client):
        self.machine_name = machine_name
        self.store_path = store_path
        self.config = config
        self.client = client
        self.handle = InstanceHandle(region=config.region)
        self.key_pair = None
        self.network = None
        self.ip_address = ""

    @property
    def instance_id(self):
        return self.handle.instance_id

    def driver_name(self):
        return DRIVER_NAME

    def pre_create_check(self):
        """Validate the configuration without touching the API."""
        self.config.validate()

    # ── Provisioning ───────────────────────────────────────────────

    def create(self, cancel_event=None):
        """Provision the UHost end to end.

        Steps:
            1. Validate the configuration
            2. Create (or reuse) the SSH key pair
            3. Create the UHost and record its id
            4. Wait for Running status
            5. Attach security group and EIP
            6. Upload the public key to the instance

        Args:
            cancel_event: optional ``threading.Event`` that aborts step 4.

        Raises:
            ConfigurationError: before any remote call, including when a UHost
                is already recorded for this driver.
            ProvisioningError: subclass naming the step that failed.
        """
        if self.handle.instance_id:
            raise ConfigurationError(
                f"machine '{self.machine_name}' already has UHost {self.handle.instance_id}; remove it before creating again"
            )
        logger.info(f"Creating UHost instance for machine '{self.machine_name}'...")
        self.config.validate()

        logger.info("Creating key pair for instance...")
        try:
            self.key_pair = self.client.create_key_pair(self.config)
        except (UCloudMachineError, OSError) as e:
            raise KeyPairError(e) from e

        logger.info(f"Creating UHost (region={self.config.region}, image={self.config.image_id})...")
        try:
            instance_id = self.client.create_instance(self.config)
        except UCloudMachineError as e:
            raise InstanceCreateError(e) from e
        self.handle.instance_id = instance_id
        logger.info(f"UHost created (id={instance_id}).")

        try:
            self._wait_running(cancel_event)
            self._create_network()
            self._upload_key_pair()
        except ProvisioningError:
            if self.config.rollback_on_failure:
                self._rollback()
            raise

        logger.info(f"UHost {instance_id} is ready at {self.ip_address}.")

    def _wait_running(self, cancel_event):
        instance_id = self.handle.instance_id
        last_status = InstanceStatus.UNKNOWN

        def is_running():
            nonlocal last_status
            try:
                description = self.client.describe_instance(self.config, instance_id)
            except (RemoteConnectionError, RemoteNotFoundError) as e:
                logger.warning(f"Could not read state of {instance_id}: {e}")
                return False
            last_status = description.status
            if last_status is InstanceStatus.ERROR:
                raise ProvisioningError(f"instance {instance_id} reported '{description.raw_state}'", step="wait-running")
            return last_status is InstanceStatus.RUNNING

        logger.info(f"Waiting for {instance_id} to reach Running status (up to {self.config.wait_attempts} attempts)...")
        try:
            wait_for(
                is_running,
                max_attempts=self.config.wait_attempts,
                interval=self.config.wait_interval,
                cancel_event=cancel_event,
                description=f"{instance_id} to be Running",
            )
        except WaitTimeoutError as e:
            raise ProvisioningTimeoutError(last_status, e.attempts) from e
        except WaitCancelledError as e:
            raise ProvisioningCancelledError(e) from e
        except RemoteProviderError as e:
            raise ProvisioningError(e, step="wait-running") from e
        logger.info("UHost is Running.")

    def _create_network(self):
        logger.info("Creating networks...")
        try:
            network = self.client.create_network(self.config, self.handle.instance_id)
        except UCloudMachineError as e:
            raise NetworkError(e) from e
        if not network.private_ip:
            raise NetworkError(f"no private IP assigned to {self.handle.instance_id}")

        self.network = network
        self.ip_address = network.address
        logger.info(f"Private IP: {network.private_ip}")
        if network.public_ip:
            logger.info(f"Public IP:  {network.public_ip}")

    def _upload_key_pair(self):
        if self.key_pair is None:
            raise KeyPairUploadError("no key pair available to upload")
        try:
            self.client.upload_key_pair(self.config, self.handle.instance_id, self.key_pair, self.ip_address)
        except (UCloudMachineError, OSError) as e:
            raise KeyPairUploadError(e) from e

    def _rollback(self):
        instance_id = self.handle.instance_id
        logger.warning(f"Rolling back: terminating UHost {instance_id}...")
        try:
            self.client.terminate_instance(self.config, instance_id)
        except RemoteProviderError as e:
            logger.error(f"Rollback failed, UHost {instance_id} must be removed manually: {e}")
            return
        self.handle.clear()

    # ── Lifecycle ──────────────────────────────────────────────────

    def _require_instance(self, verb):
        if not self.handle.instance_id:
            raise MissingInstanceError(f"cannot {verb} machine '{self.machine_name}': no UHost recorded")

    def _lifecycle_call(self, verb, operation):
        self._require_instance(verb)
        instance_id = self.handle.instance_id
        try:
            operation(self.config, instance_id)
        except RemoteProviderError as e:
            raise LifecycleError(verb, instance_id, e) from e

    def get_state(self):
        """Current canonical status of the UHost."""
        logger.debug("Get UHost details")
        if not self.handle.instance_id or not self.handle.region:
            raise MissingInstanceError("region or UHost id is empty")
        try:
            description = self.client.describe_instance(self.config, self.handle.instance_id)
        except RemoteProviderError as e:
            raise LifecycleError("get state of", self.handle.instance_id, e) from e
        return description.status

    def start(self):
        logger.info("Starting UHost...")
        self._lifecycle_call("start", self.client.start_instance)

    def stop(self):
        logger.info("Stopping UHost...")
        self._lifecycle_call("stop", self.client.stop_instance)

    def restart(self):
        logger.info("Restarting UHost...")
        self._lifecycle_call("restart", self.client.reboot_instance)

    def kill(self):
        logger.info("Killing UHost...")
        self._lifecycle_call("kill", self.client.poweroff_instance)

    def remove(self):
        """Terminate the UHost and forget its id."""
        logger.info("Removing UHost...")
        self._lifecycle_call("remove", self.client.terminate_instance)
        self.handle.clear()
        self.network = None
        self.ip_address = ""

    # ── Connection info ────────────────────────────────────────────

    def get_ip(self):
        if not self.ip_address:
            raise IPAddressNotSetError("IP address is not set")
        return self.ip_address

    def get_url(self):
        return f"tcp://{self.get_ip()}:{DOCKER_PORT}"

    def get_ssh_hostname(self):
        return self.get_ip()

    def get_ssh_username(self):
        if not self.config.ssh_user:
            self.config.ssh_user = "root"
        return self.config.ssh_user

    def get_ssh_key_path(self):
        return self.config.ssh_key_path

    # ── Persistence ────────────────────────────────────────────────

    def to_state(self):
        """Identifiers the host tool should store. Secrets are not included."""
        return {
            "machine_name": self.machine_name,
            "driver": DRIVER_NAME,
            "region": self.handle.region,
            "instance_id": self.handle.instance_id,
            "ip_address": self.ip_address,
            "ssh_user": self.config.ssh_user,
            "ssh_port": self.config.ssh_port,
            "ssh_key_path": self.config.ssh_key_path,
        }

    def load_state(self, state):
        """Restore identifiers saved by ``to_state()``.

        The saved region replaces the configured one, so every later API call
        goes to the region the UHost lives in.
        """
        self.handle.region = state.get("region") or self.handle.region
        self.config.region = self.handle.region
        self.handle.instance_id = state.get("instance_id", "")
        self.ip_address = state.get("ip_address", "")


def new_driver(machine_name, store_path=DEFAULT_STORE_PATH, config=None, client=None):
    """Build a Driver for *machine_name*.

    Fills in the machine name and the default SSH key location
    (``<store>/machines/<name>/id_rsa``) when the config leaves them empty.
    The config is copied, never mutated.
    """
    config = dataclasses.replace(config or ProvisioningConfig())
    if not config.machine_name:
        config.machine_name = machine_name
    if not config.ssh_key_path:
        config.ssh_key_path = os.path.join(machine_dir(store_path, machine_name), "id_rsa")
    if client is None:
        client = UCloudClient(api_url=config.api_url, dry_run=config.dry_run)
    return Driver(machine_name, store_path, config, client)
