"""Custom exceptions for pveprov."""


class PVEProvError(Exception):
    """Base exception for pveprov."""

    pass


class ConfigError(PVEProvError):
    """Configuration related errors."""

    pass


class ValidationError(PVEProvError):
    """Invalid or missing provisioning parameters."""

    def __init__(self, errors: list[str]) -> None:
        """Initialize validation error.

        Args:
            errors: Human-readable description of every rejected field
        """
        super().__init__("Invalid parameters:\n" + "\n".join(f"  - {e}" for e in errors))
        self.errors = errors


class CommandError(PVEProvError):
    """A local hypervisor command (pvesh, qm) exited non-zero."""

    def __init__(self, command: list[str], exit_code: int, stderr: str = "") -> None:
        """Initialize command error.

        Args:
            command: Argument list that was executed
            exit_code: Process exit status
            stderr: Captured error output
        """
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else f"exit code {exit_code}"
        super().__init__(f"'{' '.join(command[:3])}' failed: {detail}")
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class ResourceNotFoundError(CommandError):
    """The hypervisor reports that an object does not exist."""

    pass


class DownloadError(PVEProvError):
    """Base image download or verification failed."""

    pass


class RemoteCommandFailed(PVEProvError):
    """An ssh/scp call against a guest returned a non-zero status."""

    def __init__(self, command: str, host: str, exit_code: int) -> None:
        """Initialize remote command error.

        Args:
            command: Remote command (or copy description)
            host: Target host
            exit_code: Exit status reported by ssh/scp
        """
        super().__init__(f"Remote command on {host} failed with exit code {exit_code}: {command}")
        self.command = command
        self.host = host
        self.exit_code = exit_code


class ProvisioningError(PVEProvError):
    """A fatal provisioning step failed (after best-effort teardown)."""

    def __init__(self, step: str, vmid: int | None, cause: Exception) -> None:
        """Initialize provisioning error.

        Args:
            step: Name of the failed step
            vmid: VM ID involved, if one was allocated
            cause: Underlying error
        """
        target = f" for VM {vmid}" if vmid is not None else ""
        super().__init__(f"{step} failed{target}: {cause}")
        self.step = step
        self.vmid = vmid
        self.cause = cause


class ReadinessTimeout(PVEProvError):
    """The guest did not accept connections before the deadline."""

    def __init__(self, host: str, port: int, timeout: float) -> None:
        """Initialize readiness timeout.

        Args:
            host: Guest address
            port: Polled TCP port
            timeout: Seconds waited
        """
        super().__init__(f"{host}:{port} not reachable within {timeout:g} seconds")
        self.host = host
        self.port = port
        self.timeout = timeout
