"""Machine CLI handlers: create, status, start/stop/restart/kill/remove, ip, url."""

import logging
import sys

from ucloudmachine.provisioning.config import (
    DEFAULT_IMAGE_ID,
    DEFAULT_REGION,
    DEFAULT_SECURITY_GROUP,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
    DEFAULT_WAIT_ATTEMPTS,
    DEFAULT_WAIT_INTERVAL,
    build_config,
)
from ucloudmachine.provisioning.driver import DEFAULT_STORE_PATH, new_driver
from ucloudmachine.provisioning.errors import ConfigurationError, UCloudMachineError
from ucloudmachine.provisioning.store import (
    delete_machine_state,
    load_machine_state,
    save_machine_state,
    state_path,
)
from ucloudmachine.redact import register_secret

logger = logging.getLogger(__name__)


def _credential_overrides(args):
    return {
        "public_key": args.ucloud_public_key,
        "private_key": args.ucloud_private_key,
        "api_url": args.api_url,
    }


def _new_driver(args, overrides):
    config = build_config(overrides, config_path=args.config)
    register_secret(config.private_key)
    register_secret(config.password)
    return new_driver(args.name, store_path=args.store_path, config=config)


def _load_driver(args, require_credentials=True):
    """Driver for a machine created earlier, restored from its state file."""
    state = load_machine_state(args.store_path, args.name)
    overrides = {
        **_credential_overrides(args),
        "region": state.get("region"),
        "ssh_user": state.get("ssh_user"),
        "ssh_port": state.get("ssh_port"),
        "ssh_key_path": state.get("ssh_key_path"),
    }
    driver = _new_driver(args, overrides)
    if require_credentials:
        driver.config.validate_credentials()
    driver.load_state(state)
    return driver


def _exit_on_error(func, args):
    try:
        func(args)
    except UCloudMachineError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


# ── CLI handlers ───────────────────────────────────────────────────


def handle_create(args):
    """CLI handler for 'create'."""
    _exit_on_error(_handle_create, args)


def _handle_create(args):
    overrides = {
        **_credential_overrides(args),
        "region": args.ucloud_region,
        "image_id": args.ucloud_imageid,
        "password": args.ucloud_user_password,
        "ssh_user": args.ucloud_ssh_user,
        "ssh_port": args.ucloud_ssh_port,
        "private_ip_only": args.ucloud_private_address_only or None,
        "security_group_name": args.ucloud_security_group,
        "cpu": args.cpu,
        "memory": args.memory,
        "disk_space": args.disk_space,
        "wait_attempts": args.wait_attempts,
        "wait_interval": args.wait_interval,
        "rollback_on_failure": args.rollback_on_failure or None,
        "dry_run": args.dry_run or None,
    }
    driver = _new_driver(args, overrides)

    existing = state_path(args.store_path, args.name)
    if existing.exists() and not driver.config.dry_run:
        raise ConfigurationError(f"machine '{args.name}' already exists ({existing})")

    try:
        driver.create()
    finally:
        # Save whatever was created so 'remove' can clean up after a failure
        if driver.instance_id and not driver.config.dry_run:
            save_machine_state(driver)

    if driver.config.dry_run:
        logger.info(f"[dry-run] Would save machine state to {existing}")
    logger.info(f"Machine '{args.name}' created.")
    logger.info(f"  UHost:  {driver.instance_id}")
    logger.info(f"  URL:    {driver.get_url()}")
    logger.info(f"  SSH:    ssh -i {driver.get_ssh_key_path()} {driver.get_ssh_username()}@{driver.get_ssh_hostname()}")


def handle_status(args):
    """CLI handler for 'status'."""
    _exit_on_error(_handle_status, args)


def _handle_status(args):
    driver = _load_driver(args)
    logger.info(driver.get_state().value)


def handle_lifecycle(args):
    """CLI handler for start, stop, restart and kill."""
    _exit_on_error(_handle_lifecycle, args)


def _handle_lifecycle(args):
    driver = _load_driver(args)
    getattr(driver, args.action)()


def handle_remove(args):
    """CLI handler for 'remove'."""
    _exit_on_error(_handle_remove, args)


def _handle_remove(args):
    driver = _load_driver(args)
    driver.remove()
    delete_machine_state(args.store_path, args.name)
    logger.info(f"Machine '{args.name}' removed.")


def handle_ip(args):
    """CLI handler for 'ip'."""
    _exit_on_error(_handle_ip, args)


def _handle_ip(args):
    driver = _load_driver(args, require_credentials=False)
    logger.info(driver.get_ip())


def handle_url(args):
    """CLI handler for 'url'."""
    _exit_on_error(_handle_url, args)


def _handle_url(args):
    driver = _load_driver(args, require_credentials=False)
    logger.info(driver.get_url())


# ── Registration ───────────────────────────────────────────────────


def _add_common_args(parser):
    parser.add_argument("name", help="Machine name")
    parser.add_argument("--store-path", default=DEFAULT_STORE_PATH, help=f"Machine store directory (default: {DEFAULT_STORE_PATH})")
    parser.add_argument("--config", default=None, help="YAML config file with a 'ucloud:' section")
    parser.add_argument("--ucloud-public-key", default=None, help="UCloud Public Key (fallback: UCLOUD_PUBLIC_KEY env var)")
    parser.add_argument("--ucloud-private-key", default=None, help="UCloud Private Key (fallback: UCLOUD_PRIVATE_KEY env var)")
    parser.add_argument("--api-url", default=None, help="UCloud API base URL")


def register_create_command(subparsers):
    """Register the 'create' command."""
    parser = subparsers.add_parser("create", help="Create a UHost machine")
    _add_common_args(parser)
    parser.add_argument("--ucloud-region", default=None, help=f"Region of ucloud idc (fallback: UCLOUD_REGION, default: {DEFAULT_REGION})")
    parser.add_argument("--ucloud-imageid", default=None, help=f"UHost image id (default: {DEFAULT_IMAGE_ID})")
    parser.add_argument("--ucloud-user-password", default=None, help="Password of ucloud user (fallback: UCLOUD_USER_PASSWORD)")
    parser.add_argument("--ucloud-ssh-user", default=None, help=f"SSH user (default: {DEFAULT_SSH_USER})")
    parser.add_argument("--ucloud-ssh-port", type=int, default=None, help=f"SSH port (default: {DEFAULT_SSH_PORT})")
    parser.add_argument("--ucloud-private-address-only", action="store_true", help="Only use a private IP address")
    parser.add_argument("--ucloud-security-group", default=None, help=f"UCloud security group (default: {DEFAULT_SECURITY_GROUP})")
    parser.add_argument("--cpu", type=int, default=None, help="Number of CPU cores (default: 1)")
    parser.add_argument("--memory", type=int, default=None, help="Memory in MB (default: 1024)")
    parser.add_argument("--disk-space", type=int, default=None, help="Data disk size in MB (default: 20000)")
    parser.add_argument("--wait-attempts", type=int, default=None, help=f"Status polls before giving up (default: {DEFAULT_WAIT_ATTEMPTS})")
    parser.add_argument("--wait-interval", type=float, default=None, help=f"Seconds between status polls (default: {DEFAULT_WAIT_INTERVAL})")
    parser.add_argument("--rollback-on-failure", action="store_true", help="Terminate the UHost if provisioning fails after it was created")
    parser.add_argument("--dry-run", action="store_true", help="Print requests without executing")
    parser.set_defaults(func=handle_create)


def register_machine_commands(subparsers):
    """Register status, lifecycle and connection-info commands."""
    parser = subparsers.add_parser("status", help="Show the UHost status")
    _add_common_args(parser)
    parser.set_defaults(func=handle_status)

    for action, help_text in (
        ("start", "Start the UHost"),
        ("stop", "Stop the UHost"),
        ("restart", "Reboot the UHost"),
        ("kill", "Power off the UHost"),
    ):
        parser = subparsers.add_parser(action, help=help_text)
        _add_common_args(parser)
        parser.set_defaults(func=handle_lifecycle, action=action)

    parser = subparsers.add_parser("remove", help="Terminate the UHost and forget the machine")
    _add_common_args(parser)
    parser.set_defaults(func=handle_remove)

    parser = subparsers.add_parser("ip", help="Print the machine IP address")
    _add_common_args(parser)
    parser.set_defaults(func=handle_ip)

    parser = subparsers.add_parser("url", help="Print the docker URL of the machine")
    _add_common_args(parser)
    parser.set_defaults(func=handle_url)
