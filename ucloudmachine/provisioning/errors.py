"""Error kinds raised by the UHost driver and its remote client."""


class UCloudMachineError(Exception):
    """Base class for all driver errors."""


class ConfigurationError(UCloudMachineError):
    """Missing or invalid configuration; raised before any remote call."""


class LocalCommandError(UCloudMachineError):
    """A local helper command (ssh-keygen, sshpass/ssh) exited non-zero."""

    def __init__(self, command, returncode, stderr=""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"'{command}' exited with status {returncode}{detail}")


# ── Remote client failures ─────────────────────────────────────────


class RemoteProviderError(UCloudMachineError):
    """Failure surfaced by the UCloud API or the transport in front of it."""

    def __init__(self, message, action=None):
        super().__init__(message)
        self.action = action


class RemoteConnectionError(RemoteProviderError):
    """The API could not be reached (DNS, connect, read timeout...)."""


class RemoteAuthError(RemoteProviderError):
    """Credentials or request signature were rejected."""


class RemoteNotFoundError(RemoteProviderError):
    """The requested resource does not exist."""


class RemoteRejectedError(RemoteProviderError):
    """The API answered with a non-zero RetCode or an HTTP error."""

    def __init__(self, message, action=None, ret_code=None):
        super().__init__(message, action=action)
        self.ret_code = ret_code


# ── Provisioning steps ─────────────────────────────────────────────


class ProvisioningError(UCloudMachineError):
    """A provisioning step failed. Carries the step name and the cause."""

    step = "provisioning"

    def __init__(self, cause, step=None):
        if step is not None:
            self.step = step
        self.cause = cause
        super().__init__(f"{self.step} failed: {cause}")


class KeyPairError(ProvisioningError):
    step = "key-pair-create"


class InstanceCreateError(ProvisioningError):
    step = "instance-create"


class ProvisioningTimeoutError(ProvisioningError):
    """The instance did not reach Running within the allowed attempts."""

    step = "wait-running"

    def __init__(self, last_status, attempts):
        self.last_status = last_status
        self.attempts = attempts
        super().__init__(f"instance still {last_status.value} after {attempts} attempts")


class ProvisioningCancelledError(ProvisioningError):
    step = "wait-running"


class NetworkError(ProvisioningError):
    step = "network-create"


class KeyPairUploadError(ProvisioningError):
    step = "key-pair-upload"


# ── Lifecycle ──────────────────────────────────────────────────────


class MissingInstanceError(UCloudMachineError):
    """Operation needs an instance id (or address) that is not recorded."""


class IPAddressNotSetError(MissingInstanceError):
    pass


class LifecycleError(UCloudMachineError):
    """A single lifecycle call (start, stop, ...) failed remotely."""

    def __init__(self, verb, instance_id, cause):
        self.verb = verb
        self.instance_id = instance_id
        self.cause = cause
        super().__init__(f"cannot {verb} instance {instance_id}: {cause}")


# ── Polling ────────────────────────────────────────────────────────


class WaitTimeoutError(UCloudMachineError):
    def __init__(self, description, attempts):
        self.attempts = attempts
        super().__init__(f"timed out waiting for {description} after {attempts} attempts")


class WaitCancelledError(UCloudMachineError):
    def __init__(self, description, attempts):
        self.attempts = attempts
        super().__init__(f"cancelled while waiting for {description} after {attempts} attempts")
