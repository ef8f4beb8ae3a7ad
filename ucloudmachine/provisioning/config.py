"""Driver configuration: defaults, region validation, env/YAML loading."""

import logging
import os
from dataclasses import dataclass, fields

import yaml

from ucloudmachine.provisioning.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_REGION = "cn-north-03"
DEFAULT_IMAGE_ID = "uimage-5yt2b0"  # CentOS 7.0 base image
DEFAULT_CPU = 1
DEFAULT_MEMORY = 1024  # MB
DEFAULT_DISK_SPACE = 20000  # MB
DEFAULT_SSH_USER = "root"
DEFAULT_SSH_PORT = 22
DEFAULT_SECURITY_GROUP = "docker-machine"
DEFAULT_WAIT_ATTEMPTS = 10
DEFAULT_WAIT_INTERVAL = 1.0  # seconds
DEFAULT_API_URL = "https://api.ucloud.cn"

REGIONS = frozenset(
    (
        "cn-north-01",
        "cn-north-02",
        "cn-north-03",
        "cn-north-04",
        "cn-east-01",
        "cn-south-01",
        "hk-01",
        "us-west-01",
    )
)

# Env var fallbacks for settings that are usually kept out of shell history.
ENV_VARS = {
    "public_key": "UCLOUD_PUBLIC_KEY",
    "private_key": "UCLOUD_PRIVATE_KEY",
    "region": "UCLOUD_REGION",
    "password": "UCLOUD_USER_PASSWORD",
}


def validate_region(region):
    """Return *region* if it is a known UCloud region, else raise ConfigurationError."""
    if region not in REGIONS:
        raise ConfigurationError(f"invalid region '{region}', expected one of: {', '.join(sorted(REGIONS))}")
    return region


@dataclass
class ProvisioningConfig:
    """Every parameter the driver passes to the UCloud API. Validate before use."""

    public_key: str = ""
    private_key: str = ""
    region: str = DEFAULT_REGION
    image_id: str = DEFAULT_IMAGE_ID
    password: str = ""
    cpu: int = DEFAULT_CPU
    memory: int = DEFAULT_MEMORY
    disk_space: int = DEFAULT_DISK_SPACE
    ssh_user: str = DEFAULT_SSH_USER
    ssh_port: int = DEFAULT_SSH_PORT
    private_ip_only: bool = False
    security_group_name: str = DEFAULT_SECURITY_GROUP
    ssh_key_path: str = ""
    machine_name: str = ""
    wait_attempts: int = DEFAULT_WAIT_ATTEMPTS
    wait_interval: float = DEFAULT_WAIT_INTERVAL
    rollback_on_failure: bool = False
    api_url: str = DEFAULT_API_URL
    dry_run: bool = False

    def __post_init__(self):
        self.image_id = self.image_id or DEFAULT_IMAGE_ID
        self.ssh_user = (self.ssh_user or DEFAULT_SSH_USER).lower()

    def validate(self):
        """Check the fields every remote call depends on.

        Raises:
            ConfigurationError: on the first missing or invalid field.
        """
        validate_region(self.region)
        self.validate_credentials()
        if not self.password:
            raise ConfigurationError("ucloud driver requires the --ucloud-user-password option")
        if self.wait_attempts < 1:
            raise ConfigurationError(f"wait attempts must be at least 1, got {self.wait_attempts}")
        if self.wait_interval < 0:
            raise ConfigurationError(f"wait interval must not be negative, got {self.wait_interval}")
        return self

    def validate_credentials(self):
        """Check only the API key pair; enough for lifecycle calls."""
        if not self.public_key:
            raise ConfigurationError("ucloud driver requires the --ucloud-public-key option")
        if not self.private_key:
            raise ConfigurationError("ucloud driver requires the --ucloud-private-key option")
        return self


def load_config_file(config_path):
    """Load the ``ucloud:`` section of a YAML config file as a dict."""
    try:
        with open(os.path.expanduser(config_path)) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigurationError(f"config file '{config_path}' not found") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"error parsing YAML config: {e}") from e

    section = data.get("ucloud", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"'ucloud' section in {config_path} must be a mapping")

    known = {f.name for f in fields(ProvisioningConfig)}
    unknown = set(section) - known
    if unknown:
        raise ConfigurationError(f"unknown keys in 'ucloud' section: {', '.join(sorted(unknown))}")
    return section


def build_config(overrides=None, config_path=None, environ=None):
    """Merge settings into a ProvisioningConfig.

    Precedence: *overrides* (CLI flags, ``None`` means unset) > environment
    variables > YAML file > defaults. The result is not validated.
    """
    environ = os.environ if environ is None else environ
    values = load_config_file(config_path) if config_path else {}

    for name, var in ENV_VARS.items():
        if environ.get(var):
            values[name] = environ[var]

    for name, value in (overrides or {}).items():
        if value is not None:
            values[name] = value

    logger.debug(f"Resolved config keys: {', '.join(sorted(values))}")
    return ProvisioningConfig(**values)
