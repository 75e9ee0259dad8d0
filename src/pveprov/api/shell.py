"""Node-local transport: pvesh for the API tree, qm for disk import."""

import json
import shutil
from typing import Any

from ..utils.process import Runner, run_command
from .exceptions import CommandError, PVEProvError, ResourceNotFoundError

_NOT_FOUND_MARKERS = ("does not exist", "not exist", "no such")

# pvesh verbs for the HTTP methods the API uses
_VERBS = {"GET": "get", "POST": "create", "PUT": "set", "DELETE": "delete"}


def format_params(params: dict[str, Any]) -> list[str]:
    """Render API parameters as pvesh/qm command-line options.

    None values are dropped, booleans become 1/0.
    """
    args: list[str] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = int(value)
        args += [f"--{key}", str(value)]
    return args


class PveShell:
    """Run Proxmox VE commands on the local node."""

    def __init__(
        self,
        pvesh: str = "pvesh",
        qm: str = "qm",
        runner: Runner = run_command,
    ) -> None:
        """Initialize the transport.

        Args:
            pvesh: pvesh executable
            qm: qm executable
            runner: Coroutine that executes an argument list
        """
        self.pvesh = pvesh
        self.qm = qm
        self._runner = runner

    def check_available(self) -> None:
        """Fail early when not running on a Proxmox VE node."""
        for tool in (self.pvesh, self.qm):
            if not shutil.which(tool):
                raise PVEProvError(f"{tool} command not found. Run pveprov on a Proxmox VE node.")

    async def _execute(self, args: list[str]) -> str:
        try:
            result = await self._runner(args)
        except FileNotFoundError:
            raise PVEProvError(f"{args[0]} command not found")
        if result.returncode != 0:
            stderr = result.stderr or result.stdout
            if any(marker in stderr.lower() for marker in _NOT_FOUND_MARKERS):
                raise ResourceNotFoundError(args, result.returncode, stderr)
            raise CommandError(args, result.returncode, stderr)
        return result.stdout

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Call an API endpoint through pvesh.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: API path, e.g. /cluster/nextid
            params: Endpoint parameters

        Returns:
            Decoded JSON result, raw text for task output, or None

        Raises:
            CommandError: If pvesh exits non-zero
        """
        args = [self.pvesh, _VERBS[method], "/" + endpoint.lstrip("/")]
        args += format_params(params or {})
        args += ["--output-format", "json"]
        output = (await self._execute(args)).strip()
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError:
            # Worker endpoints print their task log instead of JSON
            return output

    async def run_qm(self, *qm_args: str) -> str:
        """Run a qm subcommand and return its output."""
        return await self._execute([self.qm, *qm_args])
