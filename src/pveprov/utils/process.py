"""Async subprocess execution."""

import asyncio
from typing import Awaitable, Callable, NamedTuple


class CommandResult(NamedTuple):
    """Outcome of a finished process."""

    returncode: int
    stdout: str
    stderr: str


async def run_command(
    args: list[str],
    input: str | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run a command and capture its output.

    Args:
        args: Argument list, executed without a shell
        input: Text fed to stdin
        timeout: Kill the process after this many seconds

    Returns:
        Exit status and decoded output

    Raises:
        FileNotFoundError: If the executable does not exist
        asyncio.TimeoutError: If the timeout expires
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(input.encode() if input is not None else None), timeout
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise
    return CommandResult(
        proc.returncode if proc.returncode is not None else -1,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )


Runner = Callable[..., Awaitable[CommandResult]]
