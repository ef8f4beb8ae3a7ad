"""Unit tests for SSH argument builders, key upload and the shell helper."""

import subprocess
from unittest.mock import patch

from ucloudmachine.provisioning.shell import run_shell_cmd
from ucloudmachine.provisioning.ssh_transport import authorize_key_cmd, ssh_base_args, upload_public_key


def test_ssh_base_args_batch_mode():
    args = ssh_base_args("root@1.2.3.4", "/keys/id_rsa", 22)
    assert args[0] == "ssh"
    assert "BatchMode=yes" in args
    assert args[args.index("-i") + 1] == "/keys/id_rsa"
    assert "-p" not in args
    assert args[-1] == "root@1.2.3.4"


def test_ssh_base_args_password_login_custom_port():
    args = ssh_base_args("root@1.2.3.4", None, 2222, batch_mode=False)
    assert "BatchMode=yes" not in args
    assert "-i" not in args
    assert args[args.index("-p") + 1] == "2222"


def test_authorize_key_cmd_quotes_key():
    cmd = authorize_key_cmd("ssh-rsa AAAA user@host\n")
    assert "'ssh-rsa AAAA user@host'" in cmd
    assert "~/.ssh/authorized_keys" in cmd
    assert "grep -qxF" in cmd


@patch("ucloudmachine.provisioning.ssh_transport.run_shell_cmd")
def test_upload_public_key_uses_sshpass_env(mock_run):
    mock_run.return_value = (0, "", "")

    rc, _ = upload_public_key("1.2.3.4", "root", 22, "Secret-Passw0rd", "ssh-rsa AAAA")

    assert rc == 0
    args = mock_run.call_args[0][0]
    assert args[:3] == ["sshpass", "-e", "ssh"]
    assert "root@1.2.3.4" in args
    assert "Secret-Passw0rd" not in " ".join(args)
    assert mock_run.call_args[1]["extra_env"] == {"SSHPASS": "Secret-Passw0rd"}


@patch("ucloudmachine.provisioning.ssh_transport.run_shell_cmd")
def test_upload_public_key_failure_logged(mock_run, caplog):
    mock_run.return_value = (255, "", "Permission denied\n")

    rc, stderr = upload_public_key("1.2.3.4", "root", 22, "pw", "ssh-rsa AAAA")

    assert rc == 255
    assert "Permission denied" in stderr
    assert "Failed to upload public key to root@1.2.3.4:22" in caplog.text


def test_run_shell_cmd_dry_run(caplog):
    caplog.set_level("INFO")
    assert run_shell_cmd(["ssh-keygen", "-f", "key"], dry_run=True) == (0, "", "")
    assert "[dry-run] ssh-keygen -f key" in caplog.text


def test_run_shell_cmd_missing_binary():
    rc, _, stderr = run_shell_cmd(["definitely-not-a-real-binary-xyz"])
    assert rc == 1
    assert "not found" in stderr


@patch("ucloudmachine.provisioning.shell.subprocess.run")
def test_run_shell_cmd_timeout(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="ssh", timeout=5)

    rc, _, stderr = run_shell_cmd(["ssh", "host"], timeout=5)
    assert rc == 1
    assert "timed out" in stderr


@patch("ucloudmachine.provisioning.shell.subprocess.run")
def test_run_shell_cmd_extra_env(mock_run):
    mock_run.return_value = subprocess.CompletedProcess(args=["true"], returncode=0, stdout="ok", stderr="")

    assert run_shell_cmd(["true"], extra_env={"SSHPASS": "pw"}) == (0, "ok", "")
    env = mock_run.call_args[1]["env"]
    assert env["SSHPASS"] == "pw"
    assert "PATH" in env
