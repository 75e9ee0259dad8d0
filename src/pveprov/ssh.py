"""SSH/SCP command construction and checked remote execution."""

import os
import tempfile

from .api.exceptions import PVEProvError, RemoteCommandFailed
from .models.config import SshConfig
from .utils.process import Runner, run_command


def _common_options(connect_timeout: int | None) -> list[str]:
    args = [
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", "BatchMode=yes",
    ]
    if connect_timeout:
        args += ["-o", f"ConnectTimeout={connect_timeout}"]
    return args


def build_ssh_command(
    host: str,
    user: str,
    port: int = 22,
    key: str | None = None,
    command: str | None = None,
    connect_timeout: int | None = None,
) -> list[str]:
    """Build an SSH command argument list."""
    args = ["ssh", *_common_options(connect_timeout)]
    if port != 22:
        args += ["-p", str(port)]
    if key:
        args += ["-i", key]
    args.append(f"{user}@{host}")
    if command:
        args.append(command)
    return args


def build_scp_command(
    source: str,
    host: str,
    remote_path: str,
    user: str,
    port: int = 22,
    key: str | None = None,
    connect_timeout: int | None = None,
) -> list[str]:
    """Build an SCP upload argument list."""
    args = ["scp", "-q", *_common_options(connect_timeout)]
    if port != 22:
        args += ["-P", str(port)]
    if key:
        args += ["-i", key]
    args += [source, f"{user}@{host}:{remote_path}"]
    return args


class RemoteSession:
    """Run commands on, and copy files to, one guest over SSH.

    Every call checks the exit status and raises RemoteCommandFailed on
    anything but zero.
    """

    def __init__(self, host: str, ssh: SshConfig | None = None, runner: Runner = run_command) -> None:
        self.host = host
        self.ssh = ssh or SshConfig()
        self._runner = runner

    async def _check(self, args: list[str], description: str, input: str | None = None) -> str:
        try:
            result = await self._runner(args, input=input)
        except FileNotFoundError:
            raise PVEProvError(f"{args[0]} command not found")
        if result.returncode != 0:
            raise RemoteCommandFailed(description, self.host, result.returncode)
        return result.stdout

    async def run(self, command: str) -> str:
        """Execute a remote shell command and return its stdout."""
        args = build_ssh_command(
            self.host,
            self.ssh.user,
            self.ssh.port,
            self.ssh.key,
            command=command,
            connect_timeout=self.ssh.connect_timeout,
        )
        return await self._check(args, command)

    async def upload_file(self, local_path: str, remote_path: str) -> None:
        """Copy a local file to the guest, overwriting the target."""
        args = build_scp_command(
            local_path,
            self.host,
            remote_path,
            self.ssh.user,
            self.ssh.port,
            self.ssh.key,
            connect_timeout=self.ssh.connect_timeout,
        )
        await self._check(args, f"scp {local_path} -> {remote_path}")

    async def upload_text(self, content: str, remote_path: str) -> None:
        """Write text to a remote file through a temporary local copy."""
        fd, tmp_path = tempfile.mkstemp(prefix="pveprov-")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            await self.upload_file(tmp_path, remote_path)
        finally:
            os.unlink(tmp_path)
