"""Parameter resolution: raw CLI input to a validated ProvisionRequest."""

import ipaddress
import re
from pathlib import Path

from pydantic import BaseModel

from ..api.exceptions import ValidationError
from ..models.config import SiteProfile
from ..models.request import ProvisionRequest
from ..utils.network import check_network_placement, is_ipv4

_DNS_LABEL = re.compile(r"^[a-zA-Z0-9-]+$")
_DIGITS = re.compile(r"^[0-9]+$")

MANDATORY = {
    "vm_name": "--vm-name",
    "ip_address": "--ip",
    "ci_user": "--user",
    "ci_password": "--password",
}

NUMERIC = {
    "memory": ("Memory", "MB"),
    "cpu": ("CPU", "cores"),
    "disk": ("Disk size", "GB"),
    "vm_id": ("VM ID", None),
}


class RawParameters(BaseModel):
    """Unvalidated provisioning input as typed by the operator."""

    vm_name: str | None = None
    ip_address: str | None = None
    ci_user: str | None = None
    ci_password: str | None = None
    memory: str | None = None
    cpu: str | None = None
    disk: str | None = None
    vm_id: str | None = None
    storage: str | None = None
    bridge: str | None = None
    gateway: str | None = None
    subnet: str | None = None
    ssh_key: str | None = None
    timezone: str | None = None


def read_public_key(path: Path) -> str:
    """Read an SSH public key file, without the trailing newline.

    Raises:
        ValidationError: If the file cannot be read, is not text or is empty
    """
    try:
        key = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        raise ValidationError([f"SSH public key at {path} is not readable: {e}"])
    if not key:
        raise ValidationError([f"SSH public key at {path} is empty"])
    return key


def sanitize_vm_name(name: str) -> str:
    """Rewrite a VM name towards a DNS label (underscores become hyphens)."""
    return name.replace("_", "-")


def vm_name_problems(name: str) -> list[str]:
    """Check a sanitized VM name against the DNS label rules."""
    if not _DNS_LABEL.match(name):
        return [
            f"VM name '{name}' contains invalid characters. "
            "Only letters, numbers, and hyphens are allowed."
        ]
    if name.startswith("-") or name.endswith("-"):
        return [f"VM name '{name}' cannot start or end with a hyphen."]
    return []


def _check_numbers(values: dict[str, str | None]) -> list[str]:
    errors = []
    for field, (label, unit) in NUMERIC.items():
        value = values.get(field)
        if value is None or value == "":
            continue
        suffix = f" ({unit})" if unit else ""
        if not _DIGITS.match(value):
            errors.append(f"{label} must be a positive integer{suffix}: {value}")
        elif int(value) <= 0:
            errors.append(f"{label} must be greater than zero{suffix}: {value}")
    return errors


def resolve_request(
    raw: RawParameters,
    profile: SiteProfile | None = None,
    strict_network: bool = False,
) -> ProvisionRequest:
    """Validate raw input and merge it with profile defaults.

    Checks run in a fixed order and stop at the first stage that reports
    problems: mandatory fields, numeric fields, IPv4 addresses (plus the
    network guard when strict), SSH public key, VM name.

    Args:
        raw: Operator input
        profile: Site defaults for everything not given
        strict_network: Require the IP inside the site subnet and reject
            the gateway and hypervisor host addresses

    Returns:
        Immutable provisioning request

    Raises:
        ValidationError: With every problem found in the failing stage
    """
    profile = profile or SiteProfile()

    missing = [f"Missing: {flag}" for field, flag in MANDATORY.items() if not getattr(raw, field)]
    if missing:
        raise ValidationError(missing)

    values = {
        "memory": raw.memory or str(profile.memory_mb),
        "cpu": raw.cpu or str(profile.cpu_cores),
        "disk": raw.disk or str(profile.disk_gb),
        "vm_id": raw.vm_id,
    }
    numeric_errors = _check_numbers(values)
    if numeric_errors:
        raise ValidationError(numeric_errors)

    gateway = raw.gateway or profile.gateway
    subnet = raw.subnet or profile.subnet
    address_errors = []
    if not is_ipv4(raw.ip_address):
        address_errors.append(f"Invalid IP address format: {raw.ip_address}")
    if not is_ipv4(gateway):
        address_errors.append(f"Invalid gateway address format: {gateway}")
    try:
        ipaddress.IPv4Network(subnet, strict=False)
    except ValueError:
        address_errors.append(f"Invalid subnet (expected CIDR, e.g. 192.168.3.0/24): {subnet}")
    if not address_errors and strict_network:
        address_errors += check_network_placement(
            raw.ip_address,
            subnet,
            {"gateway": gateway, "Proxmox host": profile.host_address},
        )
    if address_errors:
        raise ValidationError(address_errors)

    ssh_key = Path(raw.ssh_key) if raw.ssh_key else profile.ssh_key
    if not ssh_key.is_file():
        raise ValidationError([f"SSH public key not found at {ssh_key}"])
    ssh_public_key = read_public_key(ssh_key)

    vm_name = sanitize_vm_name(raw.vm_name)
    name_errors = vm_name_problems(vm_name)
    if name_errors:
        raise ValidationError([*name_errors, f"Original name: {raw.vm_name}"])

    return ProvisionRequest(
        vm_name=vm_name,
        ip_address=raw.ip_address,
        ci_user=raw.ci_user,
        ci_password=raw.ci_password,
        memory_mb=int(values["memory"]),
        cpu_cores=int(values["cpu"]),
        disk_gb=int(values["disk"]),
        vm_id=int(values["vm_id"]) if values["vm_id"] else None,
        storage_id=raw.storage or profile.storage,
        bridge=raw.bridge or profile.bridge,
        gateway=gateway,
        subnet=subnet,
        ssh_pubkey_path=ssh_key,
        ssh_public_key=ssh_public_key,
        timezone=raw.timezone or profile.timezone,
        profile=profile,
    )
