"""Configuration management commands for pveprov."""

from pathlib import Path

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.panel import Panel
from rich.table import Table

from ..api.exceptions import PVEProvError
from ..config import ConfigManager, SiteProfile
from ..models.config import ImageConfig
from ..utils import (
    confirm,
    console,
    print_cancelled,
    print_error,
    print_info,
    print_success,
    prompt,
)
from ..utils.helpers import mask_secret, ordered_group

app = typer.Typer(
    help="Manage site profiles",
    no_args_is_help=True,
    cls=ordered_group(["init", "list", "show", "default", "remove", "set-secret"]),
)

SECRET_NAMES = ("circleci_apikey",)


# ── Shared helpers ───────────────────────────────────────────────────────


def _render_profile_panel(name: str, profile: SiteProfile, is_default: bool = False) -> Panel:
    """Build a Rich Panel for a profile."""
    lines = []
    lines.append("[bold]── Hypervisor ──[/bold]")
    lines.append(f"[bold]Node:[/bold]          {profile.node or '(local hostname)'}")
    lines.append(f"[bold]Storage:[/bold]       {profile.storage}")
    lines.append(f"[bold]Snippets:[/bold]      {profile.snippets_storage} ({profile.snippets_dir})")

    lines.append("")
    lines.append("[bold]── Network ──[/bold]")
    lines.append(f"[bold]Bridge:[/bold]        {profile.bridge}")
    lines.append(f"[bold]Subnet:[/bold]        {profile.subnet}")
    lines.append(f"[bold]Gateway:[/bold]       {profile.gateway}")
    lines.append(f"[bold]Host address:[/bold]  {profile.host_address or '-'}")
    lines.append(f"[bold]DNS:[/bold]           {' '.join(profile.dns_servers)}")

    lines.append("")
    lines.append("[bold]── VM defaults ──[/bold]")
    lines.append(f"[bold]Resources:[/bold]     {profile.memory_mb} MB, {profile.cpu_cores} cores, {profile.disk_gb}G")
    lines.append(f"[bold]SSH key:[/bold]       {profile.ssh_key}")
    lines.append(f"[bold]Timezone:[/bold]      {profile.timezone}")
    lines.append(f"[bold]Image:[/bold]         {profile.image.filename}")
    lines.append(f"[bold]Checksum:[/bold]      {profile.image.checksum or '-'}")

    lines.append("")
    lines.append("[bold]── Secrets ──[/bold]")
    lines.append(f"[bold]CircleCI key:[/bold]  {mask_secret(profile.circleci_apikey)}")

    if is_default:
        lines.append("")
        lines.append("[green]Default profile[/green]")

    return Panel("\n".join(lines), title=f"Profile: {name}", border_style="blue")


# ── config init ──────────────────────────────────────────────────────────


@app.command("init")
def init_profile(
    name: str = typer.Argument("default", help="Profile name"),
    node: str = typer.Option(None, "--node", help="Proxmox node name [local hostname]"),
    storage: str = typer.Option(None, "--storage", "-s", help="VM disk storage"),
    bridge: str = typer.Option(None, "--bridge", "-b", help="Network bridge"),
    gateway: str = typer.Option(None, "--gateway", "-g", help="Network gateway"),
    subnet: str = typer.Option(None, "--subnet", help="Local subnet (CIDR)"),
    host_address: str = typer.Option(None, "--host-address", help="Hypervisor address, never handed to VMs"),
    ssh_key: Path = typer.Option(None, "--ssh-key", help="SSH public key file"),
    timezone: str = typer.Option(None, "--timezone", "-t", help="Guest timezone"),
    image_url: str = typer.Option(None, "--image-url", help="Base cloud image URL"),
    image_checksum: str = typer.Option(None, "--image-checksum", help="Image checksum (sha512:<hex>)"),
    yes: bool = typer.Option(False, "--yes", "-y", is_flag=True, help="Save without confirmation"),
) -> None:
    """Create or replace a site profile; unset options keep the built-in defaults."""
    config_manager = ConfigManager()

    try:
        if name in config_manager.list_profiles() and not yes:
            if not confirm(f"Profile '{name}' exists. Replace it?", default=False):
                print_cancelled()
                return

        values = {
            "node": node,
            "storage": storage,
            "bridge": bridge,
            "gateway": gateway,
            "subnet": subnet,
            "host_address": host_address,
            "ssh_key": ssh_key,
            "timezone": timezone,
        }
        values = {k: v for k, v in values.items() if v is not None}
        image_values = {k: v for k, v in {"url": image_url, "checksum": image_checksum}.items() if v}
        try:
            profile = SiteProfile(**values, image=ImageConfig(**image_values))
        except PydanticValidationError as e:
            for err in e.errors():
                field = ".".join(str(p) for p in err["loc"])
                print_error(f"{field}: {err['msg']}")
            raise typer.Exit(1)

        console.print()
        console.print(_render_profile_panel(name, profile))

        if not yes and not confirm("\nSave this profile?", default=True):
            print_cancelled()
            raise typer.Exit()

        is_first = not config_manager.list_profiles()
        config_manager.add_profile(name, profile)

        if is_first:
            print_success(f"Profile '{name}' saved (set as default)")
        else:
            print_success(f"Profile '{name}' saved")
        print_info(f"Config file: {config_manager.config_file}")

    except KeyboardInterrupt:
        console.print()
        print_cancelled()
    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)


# ── config remove ────────────────────────────────────────────────────────


@app.command("remove")
def remove_profile(
    name: str = typer.Argument(..., help="Profile name"),
    yes: bool = typer.Option(False, "--yes", "-y", is_flag=True, help="Skip confirmation"),
) -> None:
    """Remove a profile."""
    config_manager = ConfigManager()

    try:
        if not yes and not confirm(f"Remove profile '{name}'?", default=False):
            print_cancelled()
            return

        config_manager.remove_profile(name)
        print_success(f"Profile '{name}' removed")

    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)


# ── config default ───────────────────────────────────────────────────────


@app.command("default")
def set_default(
    name: str = typer.Argument(..., help="Profile name"),
) -> None:
    """Set the default profile."""
    config_manager = ConfigManager()

    try:
        config_manager.set_default_profile(name)
        print_success(f"Default profile set to '{name}'")

    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)


# ── config list ──────────────────────────────────────────────────────────


@app.command("list")
def list_profiles() -> None:
    """List all profiles."""
    config_manager = ConfigManager()

    try:
        config = config_manager.get()
        if not config.profiles:
            print_info("No profiles configured, built-in defaults apply. Run 'pveprov config init' to create one.")
            return

        table = Table(title="Configured Profiles", show_header=True, header_style="bold cyan")
        table.add_column("Profile", style="cyan")
        table.add_column("Node")
        table.add_column("Storage")
        table.add_column("Bridge")
        table.add_column("Subnet")
        table.add_column("Gateway")
        table.add_column("Default", style="green")

        for profile_name, profile in config.profiles.items():
            is_default = "✓" if profile_name == config.default_profile else ""
            table.add_row(
                profile_name,
                profile.node or "(local)",
                profile.storage,
                profile.bridge,
                profile.subnet,
                profile.gateway,
                is_default,
            )

        console.print(table)

    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)


# ── config show ──────────────────────────────────────────────────────────


@app.command("show")
def show_profile(
    name: str = typer.Argument(None, help="Profile name [default profile]"),
) -> None:
    """Show profile details (built-in defaults when nothing is configured)."""
    config_manager = ConfigManager()

    try:
        config = config_manager.get()
        profile = config_manager.get_profile(name)
        shown = name or config.default_profile or "built-in defaults"
        console.print(_render_profile_panel(shown, profile, shown == config.default_profile))

    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)


# ── config set-secret ────────────────────────────────────────────────────


@app.command("set-secret")
def set_secret(
    secret: str = typer.Argument(..., help=f"Secret name ({', '.join(SECRET_NAMES)})"),
    value: str = typer.Option(None, "--value", help="Secret value (prompted when omitted)"),
    profile: str = typer.Option(None, "--profile", "-P", help="Profile [default profile]"),
) -> None:
    """Store a secret in a profile, age-encrypted on disk."""
    config_manager = ConfigManager()

    try:
        if secret not in SECRET_NAMES:
            print_error(f"Unknown secret '{secret}'. Known: {', '.join(SECRET_NAMES)}")
            raise typer.Exit(1)

        name = profile or config_manager.get().default_profile
        if name is None:
            print_error("No profile configured. Run 'pveprov config init' first.")
            raise typer.Exit(1)

        site = config_manager.get_profile(name)
        if value is None:
            while not (value := prompt(f"{secret}", password=True)):
                print_error("Value is required")

        config_manager.add_profile(name, site.model_copy(update={secret: value}))
        print_success(f"{secret} stored in profile '{name}'")

    except KeyboardInterrupt:
        console.print()
        print_cancelled()
    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)
