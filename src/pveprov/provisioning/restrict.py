"""Post-provision role configuration over SSH."""

from typing import Callable

from pydantic import BaseModel, Field

from ..models.config import SiteProfile
from ..models.role import RoleProfile
from ..ssh import RemoteSession
from .firewall import app_role_rules, guest_rules, ufw_commands
from .render import render

RUNNER_DIR = "/var/vlic/rocklog-vlic-docker/vlic_runner"
RUNNER_IMAGE = "gixis/vlic_runner"
RUNNER_VERSION = "v12"
RUNNER_BUILD = "4858"
LEIN_URL = "https://raw.githubusercontent.com/technomancy/leiningen/stable/bin/lein"
SUPERVISOR_TEMPLATE_PATH = "/etc/supervisor/conf.d/example.conf.template"
APP_PACKAGES = ("openjdk-17-jdk", "sshfs", "rsync", "cron", "lftp")


class RemoteStep(BaseModel):
    """One remote action: a shell command or a file upload."""

    model_config = {"frozen": True}

    description: str
    command: str | None = None
    content: str | None = Field(default=None, repr=False)
    remote_path: str | None = None

    @property
    def is_upload(self) -> bool:
        return self.content is not None


def render_makefile(circleci_apikey: str | None = None) -> str:
    """Build file for the application runner; without a key the placeholder stays."""
    return render("makefile.j2", circleci_apikey=circleci_apikey, version=RUNNER_VERSION, image=RUNNER_IMAGE)


def render_supervisor_template(program: str = "CUSTOMER_NAME") -> str:
    """Supervisor program template; operators replace CUSTOMER_NAME per customer."""
    return render(
        "supervisor.conf.j2",
        program=program,
        build=RUNNER_BUILD,
        image=f"{RUNNER_IMAGE}:{RUNNER_VERSION}",
        runner_dir=RUNNER_DIR,
    )


def app_firewall_commands(profile: SiteProfile) -> list[str]:
    """Full ordered ufw policy of an application host."""
    return ufw_commands(guest_rules(profile.firewall, profile.subnet) + app_role_rules())


def app_role_steps(profile: SiteProfile, circleci_apikey: str | None = None) -> list[RemoteStep]:
    steps = [RemoteStep(description="Disable nginx", command="systemctl disable nginx")]
    steps += [RemoteStep(description="Firewall", command=cmd) for cmd in app_firewall_commands(profile)]
    steps += [
        RemoteStep(
            description="Install runtime packages",
            command=f"DEBIAN_FRONTEND=noninteractive apt-get install -y {' '.join(APP_PACKAGES)}",
        ),
        RemoteStep(
            description="Install leiningen",
            command=f"curl -fsSL -o /usr/local/bin/lein {LEIN_URL} && chmod +x /usr/local/bin/lein",
        ),
        RemoteStep(description="Create runner directory", command=f"mkdir -p {RUNNER_DIR}"),
        # Relative link target lands in the login user's home directory
        RemoteStep(description="Link runner directory", command=f"ln -sfn {RUNNER_DIR} vlic_runner"),
        RemoteStep(
            description="Upload Makefile",
            content=render_makefile(circleci_apikey),
            remote_path=f"{RUNNER_DIR}/Makefile",
        ),
        RemoteStep(
            description="Upload supervisor template",
            content=render_supervisor_template(),
            remote_path=SUPERVISOR_TEMPLATE_PATH,
        ),
    ]
    return steps


def bastion_role_steps() -> list[RemoteStep]:
    return [RemoteStep(description="Disable docker", command="systemctl disable docker")]


def role_steps(role: RoleProfile, profile: SiteProfile, circleci_apikey: str | None = None) -> list[RemoteStep]:
    """Remote actions that put a running guest into the given role."""
    if role is RoleProfile.APP:
        return app_role_steps(profile, circleci_apikey)
    return bastion_role_steps()


async def apply_steps(
    session: RemoteSession,
    steps: list[RemoteStep],
    on_step: Callable[[RemoteStep], None] | None = None,
) -> None:
    """Run steps in order, stopping at the first failure.

    Raises:
        RemoteCommandFailed: If any ssh/scp call exits non-zero
    """
    for step in steps:
        if on_step:
            on_step(step)
        if step.is_upload:
            await session.upload_text(step.content, step.remote_path)
        else:
            await session.run(step.command)


async def restrict_host(
    session: RemoteSession,
    role: RoleProfile,
    profile: SiteProfile,
    circleci_apikey: str | None = None,
    on_step: Callable[[RemoteStep], None] | None = None,
) -> list[RemoteStep]:
    """Apply a role profile to a running guest.

    Args:
        session: SSH session to the guest
        role: Target role
        profile: Site settings (firewall policy, subnet)
        circleci_apikey: Key written into the app Makefile
        on_step: Called before each remote action

    Returns:
        The steps that were applied
    """
    steps = role_steps(role, profile, circleci_apikey or profile.circleci_apikey)
    await apply_steps(session, steps, on_step)
    return steps
