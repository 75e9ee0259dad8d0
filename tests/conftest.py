from pathlib import Path

import pytest

from pveprov.api.exceptions import CommandError, ResourceNotFoundError
from pveprov.models.config import ImageConfig, SiteProfile
from pveprov.models.storage import StorageKind
from pveprov.provisioning.params import RawParameters, resolve_request
from pveprov.utils.process import CommandResult

PUBKEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyForTests ops@example"


class FakeRunner:
    """Records argument lists and answers from a queue or a callback."""

    def __init__(self, responder=None):
        self.calls = []
        self.inputs = []
        self.responder = responder or (lambda args: CommandResult(0, "", ""))

    async def __call__(self, args, input=None, timeout=None):
        self.calls.append(list(args))
        self.inputs.append(input)
        return self.responder(list(args))


class FakeHost:
    """In-memory stand-in for ProxmoxHost."""

    def __init__(self, kind=StorageKind.FILE, next_id=100, fail=None, accept_volumes=None):
        self.node = "pve1"
        self.kind = kind
        self.next_id = next_id
        self.fail = fail or {}
        self.accept_volumes = accept_volumes
        self.vms: dict[int, dict] = {}
        self.calls = []

    def _maybe_fail(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    async def get_storage_kind(self, storage):
        self._maybe_fail("get_storage_kind")
        return self.kind

    async def vm_exists(self, vmid):
        return vmid in self.vms

    async def get_next_vmid(self):
        self._maybe_fail("get_next_vmid")
        return self.next_id

    async def create_vm(self, vmid, **cfg):
        self._maybe_fail("create_vm")
        self.vms[vmid] = dict(cfg)

    async def import_disk(self, vmid, image_path, storage):
        self._maybe_fail("import_disk")
        return None

    async def update_vm_config(self, vmid, **cfg):
        self._maybe_fail("update_vm_config")
        if "scsi0" in cfg and self.accept_volumes is not None and cfg["scsi0"] not in self.accept_volumes:
            raise CommandError(["qm", "set", str(vmid)], 255, f"unable to parse volume ID '{cfg['scsi0']}'")
        self.vms[vmid].update({k: v for k, v in cfg.items() if v is not None})

    async def set_ssh_keys(self, vmid, keys):
        self.vms[vmid]["sshkeys"] = keys

    async def resize_vm_disk(self, vmid, disk, size):
        self._maybe_fail("resize_vm_disk")
        self.vms[vmid]["resized"] = (disk, size)

    async def start_vm(self, vmid):
        self._maybe_fail("start_vm")
        self.vms[vmid]["status"] = "running"

    async def delete_vm(self, vmid, purge=True):
        self._maybe_fail("delete_vm")
        self.vms.pop(vmid, None)

    async def get_vm_status(self, vmid):
        if vmid not in self.vms:
            raise ResourceNotFoundError(["pvesh"], 2, f"Configuration file 'qemu-server/{vmid}.conf' does not exist")
        return {"status": self.vms[vmid].get("status", "stopped")}

    async def get_vm_config(self, vmid):
        await self.get_vm_status(vmid)
        return dict(self.vms[vmid])


@pytest.fixture
def pubkey_file(tmp_path: Path) -> Path:
    path = tmp_path / "id_rsa.pub"
    path.write_text(PUBKEY + "\n")
    return path


@pytest.fixture
def site(tmp_path: Path, pubkey_file: Path) -> SiteProfile:
    cache = tmp_path / "cache"
    cache.mkdir()
    profile = SiteProfile(
        node="pve1",
        ssh_key=pubkey_file,
        snippets_dir=tmp_path / "snippets",
        image=ImageConfig(url="https://images.example.org/debian-12.qcow2", cache_dir=cache),
    )
    (cache / "debian-12.qcow2").write_bytes(b"qcow2")
    return profile


@pytest.fixture
def provision_request(site):
    raw = RawParameters(vm_name="test_app", ip_address="192.168.3.50", ci_user="admin", ci_password="secret123")
    return resolve_request(raw, site)
