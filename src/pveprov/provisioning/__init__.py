"""VM provisioning workflow and post-provision host configuration."""

from .params import RawParameters, resolve_request, sanitize_vm_name
from .workflow import ProvisionWorkflow

__all__ = [
    "ProvisionWorkflow",
    "RawParameters",
    "resolve_request",
    "sanitize_vm_name",
]
