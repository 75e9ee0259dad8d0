"""VM ID allocation."""

import fcntl
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..api.client import ProxmoxHost
from ..api.exceptions import PVEProvError

DEFAULT_LOCK_FILE = Path("/run/lock/pveprov-vmid.lock")


@contextmanager
def vmid_lock(lock_file: Path = DEFAULT_LOCK_FILE) -> Iterator[None]:
    """Hold an exclusive lock while an ID is picked and the VM is created.

    Two operators on the same node would otherwise both receive the same
    "next free" ID.
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(lock_file, os.O_RDWR | os.O_CREAT, 0o600)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


async def allocate_vm_id(host: ProxmoxHost, requested: int | None = None) -> int:
    """Return the requested VM ID if it is free, else the cluster's next free one.

    Args:
        host: Hypervisor client
        requested: Explicit VM ID from the operator

    Returns:
        VM ID to create

    Raises:
        PVEProvError: If the requested ID is taken or no ID is available
    """
    if requested is not None:
        if await host.vm_exists(requested):
            raise PVEProvError(
                f"VM ID {requested} already exists. Choose a different ID or delete the existing VM."
            )
        return requested
    return await host.get_next_vmid()
