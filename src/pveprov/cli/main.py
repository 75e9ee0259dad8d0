"""Main CLI application."""

import typer
from rich.console import Console

from .. import __version__
from ..utils.helpers import ordered_group
from . import config, diagnose, provision, proxy, restrict

console = Console()

app = typer.Typer(
    name="pveprov",
    help="Provision and configure cloud-init VMs on a Proxmox VE node",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    cls=ordered_group(["provision", "restrict", "proxy", "diagnose", "config"]),
)

app.command("provision")(provision.provision_vm)
app.command("restrict")(restrict.restrict_vm)
app.command("diagnose")(diagnose.diagnose)
app.add_typer(proxy.app, name="proxy")
app.add_typer(config.app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: Whether version flag was set
    """
    if value:
        console.print(f"pveprov version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """pveprov - cloud-init VM provisioning for Proxmox VE.

    Runs on the Proxmox node as root.

    Get started:
        pveprov config init                # Save site defaults (optional)
        pveprov provision -n web_1 -i 192.168.3.50 -u admin -p secret
        pveprov restrict 192.168.3.50 app  # Apply a role after boot
    """
    pass


if __name__ == "__main__":
    app()
