"""Role restriction command."""

import typer

from ..api.exceptions import PVEProvError
from ..config import ConfigManager
from ..models.role import RoleProfile
from ..provisioning.restrict import RemoteStep, restrict_host
from ..utils import print_error, print_info, print_success
from ..utils.helpers import async_to_sync
from ..utils.network import is_ipv4
from ._shared import remote_session


@async_to_sync
async def restrict_vm(
    ip: str = typer.Argument(..., help="Guest IP address"),
    role: str = typer.Argument(..., metavar="app|bastion", help="Role to apply"),
    circleci_apikey: str = typer.Argument(None, help="CircleCI API key for the app Makefile"),
    profile: str = typer.Option(None, "--profile", "-P", help="Site profile to use"),
) -> None:
    """Apply the app or bastion role to a running guest over SSH."""
    config_manager = ConfigManager()

    try:
        if not is_ipv4(ip):
            print_error(f"Invalid IP address format: {ip}")
            raise typer.Exit(1)
        try:
            role_profile = RoleProfile.parse(role)
        except ValueError as e:
            print_error(str(e))
            raise typer.Exit(1)

        site = config_manager.get_profile(profile)
        session = remote_session(ip, site)

        def on_step(step: RemoteStep) -> None:
            print_info(f"{step.description}: {step.remote_path or step.command}")

        steps = await restrict_host(session, role_profile, site, circleci_apikey, on_step=on_step)
        print_success(f"Role '{role_profile.value}' applied to {ip} ({len(steps)} steps)")

    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)
