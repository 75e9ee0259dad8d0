"""Provisioning request model."""

import ipaddress
from pathlib import Path

from pydantic import BaseModel, Field

from .config import SiteProfile
from .vm import CloudInitConfig, NetworkInterface


class ProvisionRequest(BaseModel):
    """Fully resolved, immutable input of one provisioning run."""

    model_config = {"frozen": True}

    vm_name: str = Field(..., pattern=r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?$")
    ip_address: str
    ci_user: str = Field(..., min_length=1)
    ci_password: str = Field(..., min_length=1, repr=False)
    memory_mb: int = Field(default=2048, gt=0)
    cpu_cores: int = Field(default=2, gt=0)
    disk_gb: int = Field(default=10, gt=0)
    vm_id: int | None = Field(default=None, gt=0)
    storage_id: str = "proxmox_data"
    bridge: str = "vmbr0"
    gateway: str = "192.168.3.1"
    subnet: str = "192.168.3.0/24"
    ssh_pubkey_path: Path = Path("/root/.ssh/id_rsa.pub")
    ssh_public_key: str = Field(..., min_length=1)
    timezone: str = "Europe/Zurich"
    profile: SiteProfile = Field(default_factory=SiteProfile)

    @property
    def prefix_length(self) -> int:
        return ipaddress.IPv4Network(self.subnet, strict=False).prefixlen

    @property
    def ip_config(self) -> str:
        """ipconfig0 value: address with prefix, gateway, SLAAC for IPv6."""
        return f"ip={self.ip_address}/{self.prefix_length},gw={self.gateway},ip6=auto"

    @property
    def snippet_name(self) -> str:
        return f"custom-{self.vm_name}.sh"

    @property
    def snippet_path(self) -> Path:
        return self.profile.snippets_dir / self.snippet_name

    @property
    def snippet_ref(self) -> str:
        return f"user={self.profile.snippets_storage}:snippets/{self.snippet_name}"

    @property
    def network_if(self) -> NetworkInterface:
        return NetworkInterface(bridge=self.bridge)

    def cloud_init(self) -> CloudInitConfig:
        """Cloud-init settings applied to the VM for this request."""
        return CloudInitConfig(
            ip_config=self.ip_config,
            dns_servers=list(self.profile.dns_servers),
            user=self.ci_user,
            password=self.ci_password,
            ssh_keys_path=str(self.ssh_pubkey_path),
            custom_script_ref=self.snippet_ref,
        )
