"""Storage models."""

from enum import Enum

from pydantic import BaseModel


class StorageKind(str, Enum):
    """How a storage backend names the volumes it allocates."""

    FILE = "file"
    ZFS = "zfs"
    BLOCK = "block"

    @classmethod
    def from_type(cls, storage_type: str) -> "StorageKind":
        """Map a Proxmox storage plugin type to its naming kind.

        Args:
            storage_type: Plugin type as reported by /storage/{id} (dir, zfspool, lvmthin, ...)

        Returns:
            Naming kind for volumes on that storage
        """
        if storage_type == "zfspool":
            return cls.ZFS
        if storage_type in _FILE_TYPES:
            return cls.FILE
        return cls.BLOCK


_FILE_TYPES = {"dir", "nfs", "cifs", "glusterfs", "cephfs", "btrfs"}


class StorageInfo(BaseModel):
    """Storage information."""

    model_config = {"extra": "allow"}

    storage: str
    type: str
    content: str | None = None
    shared: bool = False
    disable: bool = False
    path: str | None = None
    pool: str | None = None

    @property
    def kind(self) -> StorageKind:
        return StorageKind.from_type(self.type)


def disk_volume_id(storage: str, kind: StorageKind, vmid: int, index: int = 0) -> str:
    """Volume ID a freshly imported disk receives on the given storage.

    File-backed storages keep images in a per-VM subdirectory with a format
    extension; ZFS and block storages use a flat volume name.
    """
    name = f"vm-{vmid}-disk-{index}"
    if kind is StorageKind.FILE:
        return f"{storage}:{vmid}/{name}.raw"
    return f"{storage}:{name}"


def alternate_volume_id(storage: str, kind: StorageKind, vmid: int, index: int = 0) -> str:
    """The other naming pattern, tried when attaching the expected one fails."""
    name = f"vm-{vmid}-disk-{index}"
    if kind is StorageKind.FILE:
        return f"{storage}:{vmid}/{name}"
    return f"{storage}:{vmid}/{name}.raw"
