"""UCloud provider: UHost, security group and EIP calls via the UCloud public API.

The client holds no per-instance state. Region, credentials and ids travel
with every call, so one client can serve several drivers at once.
"""

import base64
import hashlib
import json
import logging
import os

import httpx

from ucloudmachine.provisioning.config import DEFAULT_API_URL
from ucloudmachine.provisioning.errors import (
    ConfigurationError,
    LocalCommandError,
    RemoteAuthError,
    RemoteConnectionError,
    RemoteNotFoundError,
    RemoteRejectedError,
)
from ucloudmachine.provisioning.shell import run_shell_cmd
from ucloudmachine.provisioning.ssh_transport import upload_public_key
from ucloudmachine.provisioning.types import InstanceDescription, KeyPairRecord, NetworkInfo

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds per HTTP request
DOCKER_PORT = 2376

# RetCodes UCloud uses for a bad signature or unknown public key.
AUTH_RET_CODES = frozenset((171, 172))

# Never echoed in dry-run output.
_SECRET_PARAMS = frozenset(("Password", "PublicKey", "Signature"))

SECURITY_GROUP_RULES = [
    "TCP|22|0.0.0.0/0|ACCEPT|50",
    f"TCP|{DOCKER_PORT}|0.0.0.0/0|ACCEPT|50",
]

INTERNATIONAL_REGIONS = frozenset(("hk-01", "us-west-01"))
EIP_BANDWIDTH = 2  # Mbps


# ── Request signing ────────────────────────────────────────────────


def _format_value(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def sign_params(params, private_key):
    """Compute the UCloud request signature.

    SHA1 over ``k1v1k2v2...`` with keys in sorted order, followed by the
    private key.
    """
    payload = "".join(f"{key}{params[key]}" for key in sorted(params))
    return hashlib.sha1((payload + private_key).encode("utf-8")).hexdigest()


def _indexed(prefix, values):
    """Expand a list into UCloud's ``Prefix.0``, ``Prefix.1``... parameters."""
    return {f"{prefix}.{i}": v for i, v in enumerate(values)}


class UCloudClient:
    """Remote Instance Client for UCloud UHost.

    Every operation raises a ``RemoteProviderError`` subclass on failure and
    never retries. Retry policy is the caller's business.
    """

    def __init__(self, api_url=DEFAULT_API_URL, timeout=DEFAULT_TIMEOUT, dry_run=False):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.dry_run = dry_run

    # ── API helpers ────────────────────────────────────────────────

    def _api_request(self, action, config, params=None):
        """Make a signed UCloud API request.

        Returns:
            Parsed JSON response dict, or ``None`` in dry-run mode.
        """
        query = {"Action": action, "Region": config.region, "PublicKey": config.public_key}
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = value
        query = {key: _format_value(value) for key, value in query.items()}

        if self.dry_run:
            shown = {k: v for k, v in query.items() if k not in _SECRET_PARAMS}
            logger.info(f"[dry-run] {action} {json.dumps(shown, sort_keys=True)}")
            return None

        query["Signature"] = sign_params(query, config.private_key)
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.get(f"{self.api_url}/", params=query)
        except httpx.TransportError as e:
            raise RemoteConnectionError(f"{action}: {e}", action=action) from e

        if resp.status_code in (401, 403):
            raise RemoteAuthError(f"{action}: HTTP {resp.status_code}", action=action)
        if resp.is_error:
            raise RemoteRejectedError(f"{action}: HTTP {resp.status_code}", action=action)
        try:
            body = resp.json()
        except ValueError as e:
            raise RemoteRejectedError(f"{action}: response is not JSON", action=action) from e
        if not isinstance(body, dict):
            raise RemoteRejectedError(f"{action}: response is not a JSON object", action=action)

        ret_code = body.get("RetCode", 0)
        if ret_code != 0:
            message = body.get("Message", "")
            if ret_code in AUTH_RET_CODES:
                raise RemoteAuthError(f"{action}: {message} (RetCode {ret_code})", action=action)
            raise RemoteRejectedError(f"{action}: {message} (RetCode {ret_code})", action=action, ret_code=ret_code)
        return body

    def _instance_action(self, action, config, instance_id):
        self._api_request(action, config, {"UHostId": instance_id})

    # ── Key pair ───────────────────────────────────────────────────

    def create_key_pair(self, config):
        """Generate the SSH key pair for the machine, or reuse one already on disk.

        Returns:
            KeyPairRecord with the public key text and private key path.
        """
        if not config.ssh_key_path:
            raise ConfigurationError("no SSH key path configured")
        key_path = os.path.expanduser(config.ssh_key_path)
        pub_path = f"{key_path}.pub"

        if os.path.exists(key_path) and os.path.exists(pub_path):
            logger.info(f"Reusing SSH key pair at {key_path}")
        else:
            if not self.dry_run:
                os.makedirs(os.path.dirname(key_path) or ".", exist_ok=True)
            cmd = ["ssh-keygen", "-q", "-t", "rsa", "-b", "2048", "-N", "", "-f", key_path]
            rc, _, stderr = run_shell_cmd(cmd, dry_run=self.dry_run)
            if rc != 0:
                raise LocalCommandError("ssh-keygen", rc, stderr)
            if self.dry_run:
                return KeyPairRecord(public_key_material="dry-run-placeholder", private_key_path=key_path)

        with open(pub_path) as f:
            public_key = f.read().strip()
        return KeyPairRecord(public_key_material=public_key, private_key_path=key_path)

    def upload_key_pair(self, config, instance_id, key_pair, host):
        """Authorize *key_pair* for ``config.ssh_user`` on the running instance."""
        logger.info(f"Uploading public key to {instance_id} ({host})...")
        rc, stderr = upload_public_key(
            host,
            config.ssh_user,
            config.ssh_port,
            config.password,
            key_pair.public_key_material,
            dry_run=self.dry_run,
        )
        if rc != 0:
            raise LocalCommandError("sshpass ssh", rc, stderr)

    # ── UHost ──────────────────────────────────────────────────────

    def create_instance(self, config):
        """Create a UHost with password login.

        GET /?Action=CreateUHostInstance

        Returns the new UHost id.
        """
        params = {
            "ImageId": config.image_id,
            "LoginMode": "Password",
            "Password": base64.b64encode(config.password.encode("utf-8")).decode("ascii"),
            "CPU": config.cpu,
            "Memory": config.memory,
            "DiskSpace": config.disk_space,
            "Name": config.machine_name or None,
            "ChargeType": "Dynamic",
        }
        body = self._api_request("CreateUHostInstance", config, params)
        if body is None:
            return "dry-run-uhost-id"

        ids = body.get("UHostIds", [])
        if not ids:
            raise RemoteRejectedError("CreateUHostInstance: no UHost id returned", action="CreateUHostInstance")
        return ids[0]

    def describe_instance(self, config, instance_id):
        """Fetch state and addresses of a single UHost.

        Raises:
            RemoteNotFoundError: the UHost does not exist (yet).
        """
        body = self._api_request("DescribeUHostInstance", config, _indexed("UHostIds", [instance_id]))
        if body is None:
            return InstanceDescription(instance_id=instance_id, raw_state="Running", private_ip="10.0.0.1")

        hosts = body.get("UHostSet") or []
        if not hosts:
            raise RemoteNotFoundError(f"DescribeUHostInstance: UHost {instance_id} not found", action="DescribeUHostInstance")
        host = hosts[0]

        private_ip = public_ip = ""
        for entry in host.get("IPSet") or []:
            if entry.get("Type") == "Private":
                private_ip = private_ip or entry.get("IP", "")
            else:
                public_ip = public_ip or entry.get("IP", "")

        return InstanceDescription(
            instance_id=host.get("UHostId", instance_id),
            raw_state=host.get("State", ""),
            private_ip=private_ip,
            public_ip=public_ip,
        )

    def start_instance(self, config, instance_id):
        self._instance_action("StartUHostInstance", config, instance_id)

    def stop_instance(self, config, instance_id):
        self._instance_action("StopUHostInstance", config, instance_id)

    def reboot_instance(self, config, instance_id):
        self._instance_action("RebootUHostInstance", config, instance_id)

    def poweroff_instance(self, config, instance_id):
        """Hard power-off, the equivalent of pulling the plug."""
        self._instance_action("PoweroffUHostInstance", config, instance_id)

    def terminate_instance(self, config, instance_id):
        self._instance_action("TerminateUHostInstance", config, instance_id)

    # ── Network ────────────────────────────────────────────────────

    def _find_security_group(self, config):
        body = self._api_request("DescribeSecurityGroup", config)
        if body is None:
            return None
        for group in body.get("DataSet") or []:
            if group.get("GroupName") == config.security_group_name:
                return group.get("GroupId")
        return None

    def _ensure_security_group(self, config):
        """Return the id of the configured security group, creating it if absent."""
        group_id = self._find_security_group(config)
        if group_id is not None:
            logger.info(f"Using existing security group '{config.security_group_name}' (id={group_id}).")
            return group_id

        logger.info(f"Creating security group '{config.security_group_name}'...")
        params = {
            "GroupName": config.security_group_name,
            "Description": "docker machine security group",
            **_indexed("Rule", SECURITY_GROUP_RULES),
        }
        body = self._api_request("CreateSecurityGroup", config, params)
        if body is None:
            return 0

        group_id = self._find_security_group(config)
        if group_id is None:
            raise RemoteNotFoundError(
                f"security group '{config.security_group_name}' missing after creation",
                action="CreateSecurityGroup",
            )
        return group_id

    def _allocate_eip(self, config):
        operator = "International" if config.region in INTERNATIONAL_REGIONS else "Bgp"
        params = {"OperatorName": operator, "Bandwidth": EIP_BANDWIDTH, "ChargeType": "Dynamic"}
        body = self._api_request("AllocateEIP", config, params)
        if body is None:
            return "dry-run-eip-id", "0.0.0.0"

        eips = body.get("EIPSet") or []
        eip = eips[0] if eips else {}
        addrs = eip.get("EIPAddr") or []
        eip_id = eip.get("EIPId")
        ip = addrs[0].get("IP") if addrs else None
        if not eip_id or not ip:
            raise RemoteRejectedError("AllocateEIP: no EIP returned", action="AllocateEIP")
        return eip_id, ip

    def create_network(self, config, instance_id):
        """Attach networking to a running UHost.

        Steps:
            1. Read the private IP assigned at creation
            2. Find or create the security group and grant it to the UHost
            3. Unless ``private_ip_only``, allocate an EIP and bind it

        Returns:
            NetworkInfo for the instance.
        """
        description = self.describe_instance(config, instance_id)
        if not description.private_ip:
            raise RemoteNotFoundError(f"UHost {instance_id} has no private IP", action="DescribeUHostInstance")

        group_id = self._ensure_security_group(config)
        self._api_request(
            "GrantSecurityGroup",
            config,
            {"GroupId": group_id, "ResourceType": "uhost", "ResourceId": instance_id},
        )

        public_ip = None
        if not config.private_ip_only:
            eip_id, public_ip = self._allocate_eip(config)
            logger.info(f"Binding EIP {public_ip} ({eip_id}) to {instance_id}...")
            self._api_request(
                "BindEIP",
                config,
                {"EIPId": eip_id, "ResourceType": "uhost", "ResourceId": instance_id},
            )

        return NetworkInfo(private_ip=description.private_ip, public_ip=public_ip, security_group_id=group_id)
