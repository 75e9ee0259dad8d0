"""Configuration models."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_IMAGE_URL = (
    "https://cloud.debian.org/images/cloud/bookworm/20250416-2084/"
    "debian-12-generic-amd64-20250416-2084.qcow2"
)


class ImageConfig(BaseModel):
    """Base cloud image source and local cache."""

    url: str = DEFAULT_IMAGE_URL
    checksum: str | None = Field(default=None, pattern=r"^(sha256|sha512):[0-9a-fA-F]+$")
    cache_dir: Path = Path("/tmp")

    @property
    def filename(self) -> str:
        return self.url.rstrip("/").rsplit("/", 1)[-1]

    @property
    def cache_path(self) -> Path:
        return self.cache_dir / self.filename


class FirewallConfig(BaseModel):
    """Guest firewall policy written into the first-boot script."""

    management_ips: list[str] = Field(
        default_factory=lambda: ["172.105.94.119", "116.203.216.1", "5.161.184.133"]
    )
    ssh_port: int = 22
    app_ports: list[int] = Field(default_factory=lambda: [8080, 8443])
    mosh_ports: str = Field(default="60000:61000", pattern=r"^\d+:\d+$")


class SshConfig(BaseModel):
    """SSH settings for guest access."""

    user: str = "root"
    port: int = 22
    connect_timeout: int = 10
    key: str | None = None


class ReadinessConfig(BaseModel):
    """Post-start readiness polling."""

    timeout: float = Field(default=300, gt=0)
    interval: float = Field(default=5, gt=0)


class SiteProfile(BaseModel):
    """Defaults for one Proxmox node and the network it serves."""

    node: str | None = None
    storage: str = "proxmox_data"
    bridge: str = "vmbr0"
    gateway: str = "192.168.3.1"
    subnet: str = "192.168.3.0/24"
    host_address: str | None = "192.168.3.22"
    dns_servers: list[str] = Field(default_factory=lambda: ["8.8.8.8", "1.1.1.1"])
    memory_mb: int = Field(default=2048, gt=0)
    cpu_cores: int = Field(default=2, gt=0)
    disk_gb: int = Field(default=10, gt=0)
    ssh_key: Path = Path("/root/.ssh/id_rsa.pub")
    timezone: str = "Europe/Zurich"
    snippets_dir: Path = Path("/var/lib/vz/snippets")
    snippets_storage: str = "local"
    image: ImageConfig = Field(default_factory=ImageConfig)
    firewall: FirewallConfig = Field(default_factory=FirewallConfig)
    ssh: SshConfig = Field(default_factory=SshConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    circleci_apikey: str | None = Field(default=None, repr=False)

    @field_validator("subnet")
    @classmethod
    def validate_subnet(cls, v: str) -> str:
        """Validate the subnet is an IPv4 network in CIDR form.

        Args:
            v: Field value

        Returns:
            Validated value

        Raises:
            ValueError: If the value is not a CIDR network
        """
        import ipaddress

        try:
            ipaddress.IPv4Network(v, strict=False)
        except ValueError as e:
            raise ValueError(f"subnet must be an IPv4 CIDR network: {e}")
        return v
