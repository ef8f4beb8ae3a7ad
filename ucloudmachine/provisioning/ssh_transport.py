"""SSH transport: argument builders and first-login key upload."""

import logging
import shlex

from ucloudmachine.provisioning.shell import run_shell_cmd

logger = logging.getLogger(__name__)

AUTHORIZED_KEYS = "~/.ssh/authorized_keys"


def ssh_base_args(server, ssh_key, ssh_port, batch_mode=True):
    """Build base SSH arguments.

    *batch_mode* must be False for password logins, which need a prompt
    that ``sshpass`` can answer.
    """
    args = [
        "ssh",
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", "ConnectTimeout=10",
    ]
    if batch_mode:
        args += ["-o", "BatchMode=yes"]
    if ssh_key:
        args += ["-i", ssh_key]
    if ssh_port and ssh_port != 22:
        args += ["-p", str(ssh_port)]
    args.append(server)
    return args


def authorize_key_cmd(public_key):
    """Remote shell command that appends *public_key* to authorized_keys once."""
    key = shlex.quote(public_key.strip())
    return (
        f"mkdir -p ~/.ssh && chmod 700 ~/.ssh && touch {AUTHORIZED_KEYS} && "
        f"(grep -qxF {key} {AUTHORIZED_KEYS} || echo {key} >> {AUTHORIZED_KEYS}) && "
        f"chmod 600 {AUTHORIZED_KEYS}"
    )


def upload_public_key(host, username, ssh_port, password, public_key, dry_run=False, timeout=120):
    """Install *public_key* on *host* using a password login.

    The password travels through the ``SSHPASS`` environment variable rather
    than the command line.

    Returns:
        (returncode, stderr) tuple.
    """
    server = f"{username}@{host}" if username else host
    args = ["sshpass", "-e", *ssh_base_args(server, None, ssh_port, batch_mode=False)]
    args.append(authorize_key_cmd(public_key))

    rc, _, stderr = run_shell_cmd(args, dry_run=dry_run, timeout=timeout, extra_env={"SSHPASS": password})
    if rc != 0:
        logger.error(f"Failed to upload public key to {server}:{ssh_port}: {stderr.strip()}")
    return rc, stderr
