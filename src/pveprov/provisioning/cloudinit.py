"""Cloud-init configuration and first-boot snippet generation."""

import os
import tempfile
from pathlib import Path

from ..api.client import ProxmoxHost
from ..models.request import ProvisionRequest
from .firewall import guest_rules, ufw_commands
from .render import render

# Installed by the first-boot script on every guest
GUEST_PACKAGES = (
    "docker.io",
    "supervisor",
    "emacs",
    "vim",
    "nano",
    "curl",
    "wget",
    "parted",
    "gdisk",
    "mosh",
    "nginx",
    "ufw",
    "zsh",
    "tmux",
    "make",
)

SNIPPET_MODE = 0o600


def render_user_data(request: ProvisionRequest, vmid: int, ssh_public_key: str) -> str:
    """Render the first-boot shell script for one VM.

    The output depends only on its arguments, so provisioning the same
    name twice produces the same file.

    Args:
        request: Resolved provisioning request
        vmid: Allocated VM ID
        ssh_public_key: Key text for root's authorized_keys

    Returns:
        Script text
    """
    return render(
        "user-data.sh.j2",
        vm_name=request.vm_name,
        vmid=vmid,
        root_password=request.ci_password,
        ssh_public_key=ssh_public_key,
        packages=GUEST_PACKAGES,
        timezone=request.timezone,
        gateway=request.gateway,
        dns_servers=request.profile.dns_servers,
        firewall_commands=ufw_commands(guest_rules(request.profile.firewall, request.subnet)),
    )


def write_snippet(path: Path, content: str) -> None:
    """Atomically write a snippet readable by root only.

    The script holds the root password, so it is created 0600 in a temporary
    file next to the target and renamed over any previous version.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        os.fchmod(fd, SNIPPET_MODE)
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


async def set_cloud_init_fields(host: ProxmoxHost, vmid: int, request: ProvisionRequest, ssh_public_key: str) -> None:
    """Store the static cloud-init settings on the VM definition."""
    ci = request.cloud_init()
    await host.update_vm_config(
        vmid,
        citype=ci.type,
        ipconfig0=ci.ip_config,
        nameserver=" ".join(ci.dns_servers),
        ciuser=ci.user,
        cipassword=ci.password,
    )
    await host.set_ssh_keys(vmid, ssh_public_key)
    # Serial console so the guest can be reached with `qm terminal`
    await host.update_vm_config(vmid, serial0="socket", vga="serial0")


async def configure_cloud_init(host: ProxmoxHost, vmid: int, request: ProvisionRequest) -> Path:
    """Apply cloud-init settings and attach the generated first-boot script.

    Args:
        host: Hypervisor client
        vmid: VM to configure
        request: Resolved provisioning request

    Returns:
        Path of the written snippet
    """
    await set_cloud_init_fields(host, vmid, request, request.ssh_public_key)

    write_snippet(request.snippet_path, render_user_data(request, vmid, request.ssh_public_key))
    await host.update_vm_config(vmid, cicustom=request.snippet_ref)
    return request.snippet_path
