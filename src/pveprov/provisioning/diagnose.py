"""Cloud-init health report for an existing VM."""

import re
from pathlib import Path

from pydantic import BaseModel, Field

from ..api.client import ProxmoxHost
from ..models.vm import VmRecord
from .builder import CLOUDINIT_SLOT

CLOUDINIT_KEYS = ("citype", "ciuser", "cipassword", "sshkeys", "nameserver", "searchdomain", "ipconfig0", "cicustom")

_SNIPPET_REF = re.compile(r"user=([^:,]+):snippets/([^,]+)")


class SnippetCheck(BaseModel):
    reference: str
    path: Path | None = None
    exists: bool = False
    size: int | None = None


class CloudInitDiagnosis(BaseModel):
    """Findings for one VM."""

    vmid: int
    status: str
    record: VmRecord
    cloudinit_keys: list[str] = Field(default_factory=list)
    snippet: SnippetCheck | None = None

    @property
    def drive_slots(self) -> list[str]:
        return [d.bus_slot for d in self.record.cloudinit_drives]

    @property
    def drive_ok(self) -> bool:
        return CLOUDINIT_SLOT in self.drive_slots

    def recommendations(self) -> list[str]:
        """Operator actions for the problems found (empty when healthy)."""
        advice = []
        if not self.drive_slots:
            advice.append(f"No cloud-init drive: qm set {self.vmid} --{CLOUDINIT_SLOT} <storage>:cloudinit")
        elif not self.drive_ok:
            wrong = ", ".join(self.drive_slots)
            advice.append(
                f"Cloud-init drive on {wrong}: delete it and recreate it on {CLOUDINIT_SLOT}"
            )
        if not self.cloudinit_keys:
            advice.append("No cloud-init settings found; re-run provisioning or set ciuser/ipconfig0")
        if self.snippet and self.snippet.path and not self.snippet.exists:
            advice.append(f"Custom script {self.snippet.reference} is missing on disk; regenerate it")
        return advice


def check_snippet(cicustom: str, snippets_dir: Path, snippets_storage: str = "local") -> SnippetCheck:
    """Locate the user-data snippet a ``cicustom`` value points to.

    Only snippets on ``snippets_storage``, whose files live in ``snippets_dir``,
    can be checked; other storages are reported without a path.
    """
    match = _SNIPPET_REF.search(cicustom)
    if not match or match.group(1) != snippets_storage:
        return SnippetCheck(reference=cicustom)
    path = snippets_dir / match.group(2)
    if not path.is_file():
        return SnippetCheck(reference=cicustom, path=path)
    return SnippetCheck(reference=cicustom, path=path, exists=True, size=path.stat().st_size)


async def diagnose_vm(
    host: ProxmoxHost,
    vmid: int,
    snippets_dir: Path,
    snippets_storage: str = "local",
) -> CloudInitDiagnosis:
    """Inspect a VM's cloud-init setup.

    Raises:
        ResourceNotFoundError: If the VM does not exist
    """
    status = await host.get_vm_status(vmid)
    config = await host.get_vm_config(vmid)
    snippet = check_snippet(str(config["cicustom"]), snippets_dir, snippets_storage) if "cicustom" in config else None
    return CloudInitDiagnosis(
        vmid=vmid,
        status=str(status.get("status", "unknown")),
        record=VmRecord.from_config(vmid, config),
        cloudinit_keys=[k for k in CLOUDINIT_KEYS if k in config],
        snippet=snippet,
    )
