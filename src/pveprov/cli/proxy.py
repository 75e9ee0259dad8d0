"""Bastion reverse proxy commands."""

import typer

from ..api.client import local_node_name
from ..api.exceptions import PVEProvError, RemoteCommandFailed
from ..config import ConfigManager
from ..provisioning.proxy import REMOTE_SSL_CERT, REMOTE_SSL_KEY, add_proxy, parse_proxy_target, push_ssl
from ..utils import print_error, print_info, print_success, spinner
from ..utils.helpers import async_to_sync, ordered_group
from ..utils.network import is_ipv4
from ._shared import remote_session

app = typer.Typer(
    help="Configure nginx reverse proxies on a bastion",
    no_args_is_help=True,
    cls=ordered_group(["add", "ssl"]),
)


@app.command("add")
@async_to_sync
async def add_vhost(
    bastion_ip: str = typer.Argument(..., help="Bastion IP address"),
    domain: str = typer.Argument(..., help="Base domain (e.g. example.ch)"),
    subdomain: str = typer.Argument(..., help="Subdomain (e.g. myapp)"),
    app_ip: str = typer.Argument(..., help="Application VM IP address"),
    app_port: str = typer.Argument(..., help="Application HTTP port"),
    profile: str = typer.Option(None, "--profile", "-P", help="Site profile to use"),
) -> None:
    """Forward <subdomain>.<domain> on the bastion to an application VM."""
    config_manager = ConfigManager()

    try:
        target = parse_proxy_target(bastion_ip, domain, subdomain, app_ip, app_port)
        site = config_manager.get_profile(profile)
        print_info(f"Creating server block for {target.server_name} -> {target.app_ip}:{target.app_port}")

        with spinner(f"Configuring nginx on {bastion_ip}..."):
            try:
                path = await add_proxy(remote_session(bastion_ip, site), target)
            except RemoteCommandFailed as e:
                if e.command == "nginx -t":
                    print_error(f"Nginx configuration test failed, check {target.remote_conf_path}")
                    print_info("Nginx was NOT reloaded.")
                raise

        print_success(f"{target.server_name} proxied via {path}")

    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("ssl")
@async_to_sync
async def copy_ssl(
    bastion_ip: str = typer.Argument(..., help="Bastion IP address"),
    profile: str = typer.Option(None, "--profile", "-P", help="Site profile to use"),
) -> None:
    """Copy this node's certificate to the bastion and install the TLS server block."""
    config_manager = ConfigManager()

    try:
        if not is_ipv4(bastion_ip):
            print_error(f"Invalid IP address format: {bastion_ip}")
            raise typer.Exit(1)
        site = config_manager.get_profile(profile)
        node = site.node or local_node_name()

        with spinner(f"Copying certificate to {bastion_ip}..."):
            await push_ssl(remote_session(bastion_ip, site), node)

        print_success(f"Certificate installed on {bastion_ip} ({REMOTE_SSL_CERT}, {REMOTE_SSL_KEY})")

    except PVEProvError as e:
        print_error(str(e))
        raise typer.Exit(1)
