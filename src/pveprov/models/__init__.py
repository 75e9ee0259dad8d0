"""Data models."""

from .config import (
    FirewallConfig,
    ImageConfig,
    ReadinessConfig,
    SiteProfile,
    SshConfig,
)
from .request import ProvisionRequest
from .role import RoleProfile
from .storage import StorageInfo, StorageKind
from .vm import (
    CloudInitConfig,
    DiskAttachment,
    NetworkInterface,
    VmRecord,
)

__all__ = [
    "CloudInitConfig",
    "DiskAttachment",
    "FirewallConfig",
    "ImageConfig",
    "NetworkInterface",
    "ProvisionRequest",
    "ReadinessConfig",
    "RoleProfile",
    "SiteProfile",
    "SshConfig",
    "StorageInfo",
    "StorageKind",
    "VmRecord",
]
