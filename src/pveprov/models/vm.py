"""VM (QEMU) models."""

import re
from urllib.parse import unquote

from pydantic import BaseModel, Field

_DISK_KEY = re.compile(r"^(ide|sata|scsi|virtio)\d+$")


def parse_kv(config_str: str) -> dict[str, str]:
    """Parse a comma-separated key=value string into an ordered dict.

    A leading bare value (the volume of a disk entry) is stored under "".
    """
    result: dict[str, str] = {}
    for part in config_str.split(","):
        if "=" in part:
            k, v = part.split("=", 1)
            result[k] = v
        elif part:
            result[""] = part
    return result


class DiskAttachment(BaseModel):
    """A disk attached to a VM bus slot."""

    bus_slot: str
    storage_id: str
    filename: str
    media: str | None = None
    size: str | None = None

    @property
    def is_cloudinit(self) -> bool:
        return self.filename.endswith("cloudinit")

    @classmethod
    def from_config(cls, slot: str, value: str) -> "DiskAttachment":
        """Build from a ``scsi0: storage:volume,size=10G`` config entry."""
        params = parse_kv(value)
        volume = params.get("", "")
        storage, _, filename = volume.partition(":")
        return cls(
            bus_slot=slot,
            storage_id=storage,
            filename=filename,
            media=params.get("media"),
            size=params.get("size"),
        )


class NetworkInterface(BaseModel):
    """VM network interface."""

    bridge: str
    model: str = "virtio"

    def to_config(self) -> str:
        return f"{self.model},bridge={self.bridge}"


class CloudInitConfig(BaseModel):
    """Cloud-init settings stored on the VM definition."""

    type: str = "nocloud"
    ip_config: str
    dns_servers: list[str] = Field(default_factory=list)
    user: str
    password: str = Field(repr=False)
    ssh_keys_path: str | None = None
    ssh_keys: str | None = None
    custom_script_ref: str | None = None


class VmRecord(BaseModel):
    """Hypervisor-side view of a VM, parsed from its configuration."""

    id: int
    name: str | None = None
    disks: list[DiskAttachment] = Field(default_factory=list)
    boot_disk: str | None = None
    network_if: NetworkInterface | None = None
    cloud_init: CloudInitConfig | None = None
    unused: list[str] = Field(default_factory=list)

    @property
    def cloudinit_drives(self) -> list[DiskAttachment]:
        return [d for d in self.disks if d.is_cloudinit]

    @classmethod
    def from_config(cls, vmid: int, config: dict) -> "VmRecord":
        """Build a record from the output of ``/nodes/{node}/qemu/{vmid}/config``.

        Args:
            vmid: VM ID
            config: Raw configuration dict

        Returns:
            Parsed VM record
        """
        disks = [
            DiskAttachment.from_config(key, str(value))
            for key, value in sorted(config.items())
            if _DISK_KEY.match(key)
        ]
        unused = [str(config[k]) for k in sorted(config) if k.startswith("unused")]

        boot_disk = config.get("bootdisk")
        boot = str(config.get("boot", ""))
        if boot.startswith("order="):
            boot_disk = boot[len("order="):].split(";")[0]

        network_if = None
        if "net0" in config:
            params = parse_kv(str(config["net0"]))
            bridge = params.pop("bridge", "")
            model = next((k for k in params if k in ("virtio", "e1000", "rtl8139", "vmxnet3")), "virtio")
            network_if = NetworkInterface(bridge=bridge, model=model)

        cloud_init = None
        if "ciuser" in config or "ipconfig0" in config:
            cloud_init = CloudInitConfig(
                type=config.get("citype", "nocloud"),
                ip_config=config.get("ipconfig0", ""),
                dns_servers=str(config.get("nameserver", "")).split(),
                user=config.get("ciuser", ""),
                password=config.get("cipassword", ""),
                ssh_keys=unquote(config["sshkeys"]) if "sshkeys" in config else None,
                custom_script_ref=config.get("cicustom"),
            )

        return cls(
            id=vmid,
            name=config.get("name"),
            disks=disks,
            boot_disk=boot_disk,
            network_if=network_if,
            cloud_init=cloud_init,
            unused=unused,
        )
