"""VM provisioning command."""

import asyncio

import typer

from ..api.client import ProxmoxHost
from ..api.exceptions import PVEProvError, ReadinessTimeout, ValidationError
from ..config import ConfigManager
from ..models.request import ProvisionRequest
from ..provisioning import ProvisionWorkflow, RawParameters, resolve_request
from ..provisioning.finalizer import ProvisionSummary
from ..utils import (
    console,
    download_progress,
    key_value_panel,
    print_cancelled,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from ..utils.helpers import async_to_sync, mask_secret


def _request_rows(request: ProvisionRequest) -> list[tuple[str, str]]:
    return [
        ("VM Name", request.vm_name),
        ("VM ID", str(request.vm_id) if request.vm_id else "(next free)"),
        ("IP Address", f"{request.ip_address}/{request.prefix_length}"),
        ("Gateway", request.gateway),
        ("Memory", f"{request.memory_mb} MB"),
        ("CPU Cores", str(request.cpu_cores)),
        ("Disk", f"{request.disk_gb}G"),
        ("Storage", request.storage_id),
        ("Bridge", request.bridge),
        ("Timezone", request.timezone),
        ("User", request.ci_user),
        ("Password", mask_secret(request.ci_password)),
        ("SSH Key", str(request.ssh_pubkey_path)),
        ("Image", request.profile.image.filename),
    ]


def _print_summary(summary: ProvisionSummary) -> None:
    console.print()
    console.print(key_value_panel("VM provisioning complete", summary.rows(), border_style="green"))
    if summary.ready_after is not None:
        print_success(f"SSH reachable after {summary.ready_after:.0f}s")
    console.print("\n[bold]Connection info:[/bold]")
    for line in summary.connection_lines():
        console.print(f"  {line}")
    console.print("\n[bold]Next steps:[/bold]")
    for i, line in enumerate(summary.next_steps(), 1):
        console.print(f"  {i}. {line}")


@async_to_sync
async def provision_vm(
    vm_name_arg: str = typer.Argument(None, metavar="[VM_NAME]", show_default=False),
    ip_arg: str = typer.Argument(None, metavar="[IP]", show_default=False),
    user_arg: str = typer.Argument(None, metavar="[USER]", show_default=False),
    password_arg: str = typer.Argument(None, metavar="[PASSWORD]", show_default=False),
    memory_arg: str = typer.Argument(None, metavar="[MEMORY]", show_default=False),
    cpu_arg: str = typer.Argument(None, metavar="[CPU]", show_default=False),
    disk_arg: str = typer.Argument(None, metavar="[DISK]", show_default=False),
    vm_id_arg: str = typer.Argument(None, metavar="[VM_ID]", show_default=False),
    storage_arg: str = typer.Argument(None, metavar="[STORAGE]", show_default=False),
    vm_name: str = typer.Option(None, "--vm-name", "-n", help="VM name (underscores become hyphens)"),
    ip: str = typer.Option(None, "--ip", "-i", help="Static IPv4 address"),
    user: str = typer.Option(None, "--user", "-u", help="Cloud-init user"),
    password: str = typer.Option(None, "--password", "-p", help="Cloud-init and root password"),
    memory: str = typer.Option(None, "--memory", "-m", help="Memory in MB [profile: 2048]"),
    cpu: str = typer.Option(None, "--cpu", "-c", help="CPU cores [profile: 2]"),
    disk: str = typer.Option(None, "--disk", "-d", help="Boot disk size in GB [profile: 10]"),
    vm_id: str = typer.Option(None, "--vm-id", help="VM ID [next free]"),
    storage: str = typer.Option(None, "--storage", "-s", help="Target storage [profile: proxmox_data]"),
    bridge: str = typer.Option(None, "--bridge", "-b", help="Network bridge [profile: vmbr0]"),
    gateway: str = typer.Option(None, "--gateway", "-g", envvar="GATEWAY", help="Gateway [profile: 192.168.3.1]"),
    subnet: str = typer.Option(None, "--subnet", help="Local subnet in CIDR form [profile: 192.168.3.0/24]"),
    ssh_key: str = typer.Option(None, "--ssh-key", help="SSH public key file [profile: /root/.ssh/id_rsa.pub]"),
    timezone: str = typer.Option(None, "--timezone", "-t", help="Guest timezone [profile: Europe/Zurich]"),
    profile: str = typer.Option(None, "--profile", "-P", help="Site profile to use"),
    strict_network: bool = typer.Option(
        False, "--strict-network", help="Require the IP inside the subnet and not a reserved address"
    ),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait until the guest accepts SSH"),
    wait_timeout: float = typer.Option(None, "--wait-timeout", min=1, help="Seconds to wait for SSH [profile: 300]"),
) -> None:
    """Provision a cloud-init VM from the base image.

    Arguments may be given positionally or as flags; flags win.
    """
    config_manager = ConfigManager()

    try:
        site = config_manager.get_profile(profile)
        if wait_timeout is not None:
            site = site.model_copy(
                update={"readiness": site.readiness.model_copy(update={"timeout": wait_timeout})}
            )

        raw = RawParameters(
            vm_name=vm_name or vm_name_arg,
            ip_address=ip or ip_arg,
            ci_user=user or user_arg,
            ci_password=password or password_arg,
            memory=memory or memory_arg,
            cpu=cpu or cpu_arg,
            disk=disk or disk_arg,
            vm_id=vm_id or vm_id_arg,
            storage=storage or storage_arg,
            bridge=bridge,
            gateway=gateway,
            subnet=subnet,
            ssh_key=ssh_key,
            timezone=timezone,
        )
        request = resolve_request(raw, site, strict_network=strict_network)
        if request.vm_name != raw.vm_name:
            print_info(f"VM name sanitized: '{raw.vm_name}' -> '{request.vm_name}'")
        console.print(key_value_panel("VM configuration", _request_rows(request)))

        host = ProxmoxHost(node=site.node)
        host.shell.check_available()

        with download_progress() as progress:
            task_id = None
            step_id = progress.add_task("Preparing...", total=None)

            def on_download(done: int, total: int | None) -> None:
                nonlocal task_id
                if task_id is None:
                    task_id = progress.add_task(f"Downloading {site.image.filename}", total=total)
                progress.update(task_id, completed=done)

            def on_step(message: str) -> None:
                print_info(message)
                progress.update(step_id, description=message)

            workflow = ProvisionWorkflow(host, request, on_download_progress=on_download, notify=on_step)
            summary = await workflow.run(wait=wait)

        _print_summary(summary)

    except ReadinessTimeout as e:
        print_error(str(e))
        print_warning("The VM was left running. Check its console with 'qm terminal'.")
        raise typer.Exit(1)
    except ValidationError as e:
        print_error(str(e))
        print_info("See 'pveprov provision --help' for usage.")
        raise typer.Exit(1)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print_cancelled()
        raise typer.Exit(1)
    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)

