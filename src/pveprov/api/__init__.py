"""Hypervisor client and errors."""

from .client import ProxmoxHost
from .exceptions import (
    CommandError,
    ConfigError,
    DownloadError,
    ProvisioningError,
    PVEProvError,
    ReadinessTimeout,
    RemoteCommandFailed,
    ResourceNotFoundError,
    ValidationError,
)
from .shell import PveShell

__all__ = [
    "CommandError",
    "ConfigError",
    "DownloadError",
    "ProvisioningError",
    "ProxmoxHost",
    "PVEProvError",
    "PveShell",
    "ReadinessTimeout",
    "RemoteCommandFailed",
    "ResourceNotFoundError",
    "ValidationError",
]
