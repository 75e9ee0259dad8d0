"""Guest firewall (ufw) rule sets.

ufw evaluates rules first-match-wins, so the order of the lists built here
is the effective policy: explicit SSH allows, then the SSH deny, then the
public services.
"""

from pydantic import BaseModel

from ..models.config import FirewallConfig

# Machine-to-machine ranges opened on application hosts
APP_ROLE_PORT_RANGES = ("8080:8090", "18080:18090", "28080:28090")


class FirewallRule(BaseModel):
    """One ufw rule."""

    model_config = {"frozen": True}

    action: str = "allow"
    port: str
    proto: str = "tcp"
    source: str | None = None
    comment: str | None = None

    def to_ufw(self) -> str:
        """Render as a ufw command line."""
        if self.source:
            cmd = f"ufw {self.action} from {self.source} to any port {self.port} proto {self.proto}"
        else:
            cmd = f"ufw {self.action} {self.port}/{self.proto}"
        if self.comment:
            cmd += f" comment '{self.comment}'"
        return cmd


def guest_rules(firewall: FirewallConfig, subnet: str) -> list[FirewallRule]:
    """Rules applied by the first-boot script of every new guest.

    Args:
        firewall: Management addresses and service ports
        subnet: Local network allowed to reach SSH

    Returns:
        Ordered rule list
    """
    ssh = str(firewall.ssh_port)
    rules = [FirewallRule(port=ssh, source=ip) for ip in firewall.management_ips]
    rules.append(FirewallRule(port=ssh, source=subnet))
    rules.append(FirewallRule(action="deny", port=ssh, comment="Deny all other SSH access"))
    rules.append(FirewallRule(port="80"))
    rules.append(FirewallRule(port="443"))
    rules.extend(FirewallRule(port=str(p)) for p in firewall.app_ports)
    rules.append(FirewallRule(port=firewall.mosh_ports, proto="udp"))
    return rules


def app_role_rules() -> list[FirewallRule]:
    """Extra allows opened by the app role on top of the guest rules."""
    return [FirewallRule(port=r) for r in APP_ROLE_PORT_RANGES]


def ufw_commands(rules: list[FirewallRule], enable: bool = True) -> list[str]:
    """ufw command lines for a rule list, optionally followed by a forced enable."""
    commands = [rule.to_ufw() for rule in rules]
    if enable:
        commands.append("ufw --force enable")
    return commands
