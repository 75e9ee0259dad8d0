"""Proxmox VE node client."""

import re
import socket
from typing import Any
from urllib.parse import quote

from ..models.storage import StorageInfo, StorageKind
from .exceptions import PVEProvError, ResourceNotFoundError
from .shell import PveShell

_IMPORTED_AS = re.compile(r"imported disk as '(?:unused\d+:)?([^']+)'")


def local_node_name() -> str:
    """Proxmox node name of this host (short hostname)."""
    return socket.gethostname().split(".")[0]


class ProxmoxHost:
    """Hypervisor operations against one Proxmox VE node."""

    def __init__(self, node: str | None = None, shell: PveShell | None = None) -> None:
        """Initialize the client.

        Args:
            node: Node name (defaults to the local hostname)
            shell: Command transport
        """
        self.node = node or local_node_name()
        self.shell = shell or PveShell()

    async def get(self, endpoint: str, **params: Any) -> Any:
        """Make a GET request."""
        return await self.shell.request("GET", endpoint, params)

    async def post(self, endpoint: str, **params: Any) -> Any:
        """Make a POST request."""
        return await self.shell.request("POST", endpoint, params)

    async def put(self, endpoint: str, **params: Any) -> Any:
        """Make a PUT request."""
        return await self.shell.request("PUT", endpoint, params)

    async def delete(self, endpoint: str, **params: Any) -> Any:
        """Make a DELETE request."""
        return await self.shell.request("DELETE", endpoint, params)

    def _vm_path(self, vmid: int, suffix: str = "") -> str:
        return f"/nodes/{self.node}/qemu/{vmid}{suffix}"

    # Cluster

    async def get_next_vmid(self) -> int:
        """Get next available VMID.

        Returns:
            Next available VMID

        Raises:
            PVEProvError: If the cluster returns no usable ID
        """
        result = await self.get("/cluster/nextid")
        try:
            return int(result)
        except (TypeError, ValueError):
            raise PVEProvError(f"Could not get next VM ID from Proxmox (got {result!r})")

    # VM methods

    async def vm_exists(self, vmid: int) -> bool:
        """Check whether a VM with this ID exists on the node."""
        try:
            await self.get_vm_status(vmid)
        except ResourceNotFoundError:
            return False
        return True

    async def get_vm_status(self, vmid: int) -> dict[str, Any]:
        """Get current status of a VM.

        Args:
            vmid: VM ID

        Returns:
            VM status
        """
        return await self.get(self._vm_path(vmid, "/status/current"))

    async def get_vm_config(self, vmid: int) -> dict[str, Any]:
        """Get VM configuration.

        Args:
            vmid: VM ID

        Returns:
            VM configuration
        """
        return await self.get(self._vm_path(vmid, "/config"))

    async def create_vm(self, vmid: int, **config_params: Any) -> None:
        """Create a new VM.

        Args:
            vmid: VM ID
            **config_params: VM configuration parameters (name, memory, cores, etc.)
        """
        await self.post(f"/nodes/{self.node}/qemu", vmid=vmid, **config_params)

    async def update_vm_config(self, vmid: int, **config_params: Any) -> None:
        """Update VM configuration.

        Args:
            vmid: VM ID
            **config_params: Configuration parameters (scsi0, boot, ciuser, etc.)
        """
        data = {k: v for k, v in config_params.items() if v is not None}
        if data:
            await self.put(self._vm_path(vmid, "/config"), **data)

    async def set_ssh_keys(self, vmid: int, public_keys: str) -> None:
        """Store authorized keys in the cloud-init config.

        The API expects the key text URL-encoded.
        """
        await self.update_vm_config(vmid, sshkeys=quote(public_keys.strip() + "\n", safe=""))

    async def import_disk(self, vmid: int, image_path: str, storage: str) -> str | None:
        """Import a disk image into a storage as an unused VM disk.

        Args:
            vmid: VM ID
            image_path: Local image file
            storage: Target storage ID

        Returns:
            Volume ID reported by qm, if it could be parsed
        """
        output = await self.shell.run_qm("disk", "import", str(vmid), image_path, storage)
        match = _IMPORTED_AS.search(output)
        return match.group(1) if match else None

    async def resize_vm_disk(self, vmid: int, disk: str, size: str) -> None:
        """Resize a VM disk.

        Args:
            vmid: VM ID
            disk: Disk name (e.g. scsi0)
            size: New size (e.g. '10G')
        """
        await self.put(self._vm_path(vmid, "/resize"), disk=disk, size=size)

    async def start_vm(self, vmid: int) -> None:
        """Start a VM."""
        await self.post(self._vm_path(vmid, "/status/start"))

    async def delete_vm(self, vmid: int, purge: bool = True) -> None:
        """Destroy a VM and its disks.

        Args:
            vmid: VM ID
            purge: Also remove from backup jobs, replication and HA config
        """
        await self.delete(
            self._vm_path(vmid),
            purge=purge,
            **{"destroy-unreferenced-disks": True},
        )

    # Storage methods

    async def get_storage_config(self, storage: str) -> StorageInfo:
        """Get storage configuration.

        Args:
            storage: Storage ID

        Returns:
            Storage definition
        """
        data = await self.get(f"/storage/{storage}")
        if not isinstance(data, dict):
            raise PVEProvError(f"Unexpected storage description for '{storage}'")
        data.setdefault("storage", storage)
        return StorageInfo(**data)

    async def get_storage_kind(self, storage: str) -> StorageKind:
        """Volume naming kind of a storage, from its plugin type."""
        return (await self.get_storage_config(storage)).kind
