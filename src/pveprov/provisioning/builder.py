"""VM creation and disk setup."""

from typing import Callable

from ..api.client import ProxmoxHost
from ..api.exceptions import CommandError
from ..models.request import ProvisionRequest
from ..models.storage import StorageKind, alternate_volume_id, disk_volume_id

BOOT_SLOT = "scsi0"
CLOUDINIT_SLOT = "ide2"
SCSI_CONTROLLER = "virtio-scsi-pci"


async def create_vm_shell(host: ProxmoxHost, vmid: int, request: ProvisionRequest) -> None:
    """Create the VM with name, memory, cores and its network interface."""
    await host.create_vm(
        vmid,
        name=request.vm_name,
        memory=request.memory_mb,
        cores=request.cpu_cores,
        net0=request.network_if.to_config(),
    )


def boot_disk_candidates(storage: str, kind: StorageKind, vmid: int, imported: str | None = None) -> list[str]:
    """Volume IDs to try, in order, when attaching the imported disk.

    The name reported by the import wins; the naming rule of the storage
    kind comes next and the other naming pattern is the last resort.
    """
    candidates = [imported] if imported else []
    for volid in (disk_volume_id(storage, kind, vmid), alternate_volume_id(storage, kind, vmid)):
        if volid not in candidates:
            candidates.append(volid)
    return candidates


async def attach_boot_disk(
    host: ProxmoxHost,
    vmid: int,
    candidates: list[str],
    on_retry: Callable[[str, CommandError], None] | None = None,
) -> str:
    """Attach the first candidate volume the hypervisor accepts as the boot disk.

    Args:
        host: Hypervisor client
        vmid: VM ID
        candidates: Volume IDs in order of preference
        on_retry: Called with the rejected volume and error before the next attempt

    Returns:
        The attached volume ID

    Raises:
        CommandError: If every candidate is rejected
    """
    if not candidates:
        raise ValueError("no boot disk candidates")
    last_error: CommandError | None = None
    for volid in candidates:
        try:
            await host.update_vm_config(vmid, scsihw=SCSI_CONTROLLER, **{BOOT_SLOT: volid})
            return volid
        except CommandError as e:
            last_error = e
            if on_retry and volid != candidates[-1]:
                on_retry(volid, e)
    raise last_error


async def set_boot_order(host: ProxmoxHost, vmid: int) -> None:
    await host.update_vm_config(vmid, boot=f"order={BOOT_SLOT}")


async def resize_boot_disk(host: ProxmoxHost, vmid: int, disk_gb: int) -> CommandError | None:
    """Grow the boot disk to the requested size.

    Failure is not fatal (the disk keeps the image's size), so the error is
    returned for the caller to report instead of raised.
    """
    try:
        await host.resize_vm_disk(vmid, BOOT_SLOT, f"{disk_gb}G")
    except CommandError as e:
        return e
    return None


async def add_cloudinit_drive(host: ProxmoxHost, vmid: int, storage: str) -> None:
    await host.update_vm_config(vmid, **{CLOUDINIT_SLOT: f"{storage}:cloudinit"})
