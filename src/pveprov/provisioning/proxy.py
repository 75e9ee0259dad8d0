"""Nginx reverse proxy setup on a bastion host."""

import re
from pathlib import Path

from pydantic import BaseModel, Field

from ..api.exceptions import PVEProvError, ValidationError
from ..ssh import RemoteSession
from ..utils.network import is_ipv4
from .render import render

SITES_DIR = "/etc/nginx/sites-enabled"
SSL_DIR = "/etc/nginx/ssl"
REMOTE_SSL_CERT = f"{SSL_DIR}/proxmox.crt"
REMOTE_SSL_KEY = f"{SSL_DIR}/proxmox.key"
REMOTE_SSL_CONF = "/etc/nginx/conf.d/ssl.conf"
PVE_NODES_DIR = Path("/etc/pve/nodes")

_LABEL = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?$")
_DOMAIN = re.compile(r"^([a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$")


class ProxyTarget(BaseModel):
    """One subdomain on the bastion forwarded to an application VM."""

    model_config = {"frozen": True}

    bastion_ip: str
    domain: str
    subdomain: str
    app_ip: str
    app_port: int = Field(ge=1, le=65535)

    @property
    def server_name(self) -> str:
        return f"{self.subdomain}.{self.domain}"

    @property
    def remote_conf_path(self) -> str:
        return f"{SITES_DIR}/{self.server_name}.conf"


def parse_proxy_target(bastion_ip: str, domain: str, subdomain: str, app_ip: str, app_port: str) -> ProxyTarget:
    """Validate proxy arguments.

    Raises:
        ValidationError: Listing every invalid argument
    """
    errors = []
    if not is_ipv4(bastion_ip):
        errors.append(f"Invalid bastion IP address: {bastion_ip}")
    if not _DOMAIN.match(domain):
        errors.append(f"Invalid domain: {domain}")
    if not _LABEL.match(subdomain):
        errors.append(f"Invalid subdomain: {subdomain}")
    if not is_ipv4(app_ip):
        errors.append(f"Invalid application IP address: {app_ip}")
    if not app_port.isdigit() or not 1 <= int(app_port) <= 65535:
        errors.append(f"Invalid application port number: {app_port}")
    if errors:
        raise ValidationError(errors)
    return ProxyTarget(
        bastion_ip=bastion_ip,
        domain=domain,
        subdomain=subdomain,
        app_ip=app_ip,
        app_port=int(app_port),
    )


def render_vhost(target: ProxyTarget) -> str:
    return render(
        "vhost.conf.j2",
        server_name=target.server_name,
        subdomain=target.subdomain,
        app_ip=target.app_ip,
        app_port=target.app_port,
        ssl_cert=REMOTE_SSL_CERT,
        ssl_key=REMOTE_SSL_KEY,
    )


async def add_proxy(session: RemoteSession, target: ProxyTarget) -> str:
    """Install the vhost on the bastion, test it and reload nginx.

    Returns:
        Remote path of the vhost file

    Raises:
        RemoteCommandFailed: If the upload fails or ``nginx -t`` rejects the
            configuration (nginx is then not reloaded)
    """
    await session.run(f"mkdir -p {SITES_DIR}")
    await session.upload_text(render_vhost(target), target.remote_conf_path)
    await session.run("nginx -t")
    await session.run("systemctl reload nginx")
    return target.remote_conf_path


def node_certificate(node: str, nodes_dir: Path = PVE_NODES_DIR) -> tuple[Path, Path]:
    """Certificate and key the node's web proxy serves."""
    return nodes_dir / node / "pveproxy-ssl.pem", nodes_dir / node / "pveproxy-ssl.key"


async def push_ssl(session: RemoteSession, node: str, nodes_dir: Path = PVE_NODES_DIR) -> None:
    """Copy the node certificate to the bastion and install the default TLS server.

    Raises:
        PVEProvError: If the certificate or key is missing on this node
        RemoteCommandFailed: If any remote step fails
    """
    cert, key = node_certificate(node, nodes_dir)
    for path in (cert, key):
        if not path.is_file():
            raise PVEProvError(f"File not found: {path}")

    await session.run(f"mkdir -p {SSL_DIR} && chmod 700 {SSL_DIR}")
    await session.upload_file(str(cert), REMOTE_SSL_CERT)
    await session.upload_file(str(key), REMOTE_SSL_KEY)
    await session.run(
        f"chmod 600 {REMOTE_SSL_CERT} {REMOTE_SSL_KEY} && "
        f"chown www-data:www-data {REMOTE_SSL_CERT} {REMOTE_SSL_KEY}"
    )
    await session.upload_text(render("ssl.conf.j2", ssl_cert=REMOTE_SSL_CERT, ssl_key=REMOTE_SSL_KEY), REMOTE_SSL_CONF)
