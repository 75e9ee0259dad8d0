"""VM start, readiness wait and the provisioning summary."""

from pydantic import BaseModel

from ..api.client import ProxmoxHost
from ..models.config import ReadinessConfig
from ..models.request import ProvisionRequest
from ..utils.network import wait_for_port


class ProvisionSummary(BaseModel):
    """What was built, for the operator."""

    vmid: int
    name: str
    ip_address: str
    gateway: str
    memory_mb: int
    cpu_cores: int
    disk_gb: int
    storage_id: str
    bridge: str
    timezone: str
    ci_user: str
    ssh_pubkey_path: str
    snippet_path: str
    boot_volume: str | None = None
    ready_after: float | None = None

    @classmethod
    def from_request(cls, request: ProvisionRequest, vmid: int, **extra) -> "ProvisionSummary":
        return cls(
            vmid=vmid,
            name=request.vm_name,
            ip_address=request.ip_address,
            gateway=request.gateway,
            memory_mb=request.memory_mb,
            cpu_cores=request.cpu_cores,
            disk_gb=request.disk_gb,
            storage_id=request.storage_id,
            bridge=request.bridge,
            timezone=request.timezone,
            ci_user=request.ci_user,
            ssh_pubkey_path=str(request.ssh_pubkey_path),
            snippet_path=str(request.snippet_path),
            **extra,
        )

    def rows(self) -> list[tuple[str, str]]:
        """(label, value) pairs; the password is never part of the summary."""
        return [
            ("VM ID", str(self.vmid)),
            ("Name", self.name),
            ("IP Address", self.ip_address),
            ("Gateway", self.gateway),
            ("Memory", f"{self.memory_mb} MB"),
            ("CPU Cores", str(self.cpu_cores)),
            ("System Disk", f"{self.disk_gb}G (scsi0)"),
            ("Storage", self.storage_id),
            ("Bridge", self.bridge),
            ("Timezone", self.timezone),
            ("SSH User", self.ci_user),
            ("SSH Password", "*****"),
            ("SSH PubKey", self.ssh_pubkey_path),
            ("Cloud-init script", self.snippet_path),
        ]

    def connection_lines(self) -> list[str]:
        return [
            f"SSH:    ssh {self.ci_user}@{self.ip_address}",
            f"Root:   ssh root@{self.ip_address}  (password: *****)",
            f"HTTP:   http://{self.ip_address}",
            f"HTTPS:  https://{self.ip_address}",
        ]

    def next_steps(self) -> list[str]:
        return [
            "Check cloud-init logs: /var/log/cloud-init-output.log",
            "Verify services: systemctl status nginx docker",
            "Check firewall: ufw status verbose",
        ]


async def start_vm(host: ProxmoxHost, vmid: int) -> None:
    await host.start_vm(vmid)


async def wait_until_ready(ip_address: str, readiness: ReadinessConfig, port: int = 22) -> float:
    """Poll the guest's SSH port.

    Returns:
        Seconds until the port accepted a connection

    Raises:
        ReadinessTimeout: If the deadline passes first
    """
    return await wait_for_port(ip_address, port, timeout=readiness.timeout, interval=readiness.interval)
