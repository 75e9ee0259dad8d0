"""Cloud-init diagnosis command."""

import typer

from ..api.client import ProxmoxHost
from ..api.exceptions import PVEProvError, ResourceNotFoundError
from ..config import ConfigManager
from ..provisioning.builder import CLOUDINIT_SLOT
from ..provisioning.diagnose import CloudInitDiagnosis, diagnose_vm
from ..utils import console, create_table, print_error
from ..utils.helpers import async_to_sync


def _print_diagnosis(diag: CloudInitDiagnosis) -> None:
    console.print(f"\n[bold]Cloud-init diagnosis for VM {diag.vmid}[/bold] ({diag.record.name or '-'})")
    console.print(f"Status: {diag.status}\n")

    table = create_table(
        title="Disks",
        columns=[("Slot", "cyan"), ("Storage", ""), ("Volume", ""), ("Size", "")],
        rows=[[d.bus_slot, d.storage_id, d.filename, d.size or ""] for d in diag.record.disks],
    )
    console.print(table)

    if not diag.drive_slots:
        console.print("[red]✗[/red] No cloud-init drive found")
    for slot in diag.drive_slots:
        if slot == CLOUDINIT_SLOT:
            console.print(f"[green]✓[/green] Cloud-init drive on {slot}")
        else:
            console.print(f"[yellow]![/yellow] Cloud-init drive on {slot} (expected {CLOUDINIT_SLOT})")

    if diag.cloudinit_keys:
        console.print(f"[green]✓[/green] Cloud-init settings: {', '.join(diag.cloudinit_keys)}")
    else:
        console.print("[red]✗[/red] No cloud-init settings found")

    if diag.snippet is None:
        console.print("No custom cloud-init script configured")
    elif diag.snippet.exists:
        console.print(f"[green]✓[/green] Script {diag.snippet.path} ({diag.snippet.size} bytes)")
    elif diag.snippet.path:
        console.print(f"[red]✗[/red] Script {diag.snippet.path} not found")
    else:
        console.print(f"[yellow]![/yellow] Script {diag.snippet.reference} is not on the local snippets storage")

    advice = diag.recommendations()
    console.print("\n[bold]Recommendations:[/bold]")
    if not advice:
        console.print("  None, cloud-init looks correctly set up.")
    for line in advice:
        console.print(f"  - {line}")


@async_to_sync
async def diagnose(
    vmid: int = typer.Argument(..., help="VM ID"),
    profile: str = typer.Option(None, "--profile", "-P", help="Site profile to use"),
) -> None:
    """Diagnose a VM's cloud-init drive, settings and custom script."""
    config_manager = ConfigManager()

    try:
        site = config_manager.get_profile(profile)
        host = ProxmoxHost(node=site.node)
        try:
            diag = await diagnose_vm(host, vmid, site.snippets_dir, site.snippets_storage)
        except ResourceNotFoundError:
            print_error(f"VM {vmid} does not exist or is not accessible.")
            raise typer.Exit(1)
        _print_diagnosis(diag)

    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)
