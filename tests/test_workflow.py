import asyncio

import pytest
from jinja2 import TemplateError

from pveprov.api.exceptions import CommandError, ProvisioningError
from pveprov.models.storage import StorageKind
from pveprov.provisioning.workflow import ProvisionWorkflow

from conftest import FakeHost


def _workflow(host, request, tmp_path):
    messages = []
    workflow = ProvisionWorkflow(
        host,
        request,
        lock_file=tmp_path / "vmid.lock",
        notify=messages.append,
        warn=lambda m: messages.append(f"WARN {m}"),
        success=messages.append,
    )
    return workflow, messages


def _error(step):
    return CommandError(["qm", step], 1, f"{step} failed")


def test_provisions_with_defaults(provision_request, tmp_path):
    host = FakeHost()
    workflow, _ = _workflow(host, provision_request, tmp_path)

    summary = asyncio.run(workflow.run(wait=False))

    vm = host.vms[100]
    assert summary.vmid == 100
    assert vm["name"] == "test-app"
    assert vm["memory"] == 2048
    assert vm["cores"] == 2
    assert vm["net0"] == "virtio,bridge=vmbr0"
    assert vm["scsi0"] == "proxmox_data:100/vm-100-disk-0.raw"
    assert vm["scsihw"] == "virtio-scsi-pci"
    assert vm["boot"] == "order=scsi0"
    assert vm["resized"] == ("scsi0", "10G")
    assert vm["ide2"] == "proxmox_data:cloudinit"
    assert vm["ipconfig0"] == "ip=192.168.3.50/24,gw=192.168.3.1,ip6=auto"
    assert vm["ciuser"] == "admin"
    assert vm["cicustom"] == "user=local:snippets/custom-test-app.sh"
    assert vm["status"] == "running"
    assert summary.ready_after is None


def test_explicit_vm_id_must_be_free(site, provision_request, tmp_path):
    request = provision_request.model_copy(update={"vm_id": 300})
    host = FakeHost()
    host.vms[300] = {"name": "existing"}
    workflow, _ = _workflow(host, request, tmp_path)

    with pytest.raises(ProvisioningError) as exc:
        asyncio.run(workflow.run(wait=False))

    assert exc.value.step == "allocate VM ID"
    assert host.vms[300] == {"name": "existing"}
    assert "create_vm" not in host.calls


def test_import_failure_destroys_vm(provision_request, tmp_path):
    host = FakeHost(fail={"import_disk": _error("import")})
    workflow, messages = _workflow(host, provision_request, tmp_path)

    with pytest.raises(ProvisioningError) as exc:
        asyncio.run(workflow.run(wait=False))

    assert exc.value.step == "import disk"
    assert exc.value.vmid == 100
    assert 100 not in host.vms
    assert any("Destroying VM 100" in m for m in messages)


def test_start_failure_destroys_vm(provision_request, tmp_path):
    host = FakeHost(fail={"start_vm": _error("start")})
    workflow, _ = _workflow(host, provision_request, tmp_path)

    with pytest.raises(ProvisioningError) as exc:
        asyncio.run(workflow.run(wait=False))

    assert exc.value.step == "start VM"
    assert 100 not in host.vms


def test_teardown_failure_keeps_original_error(provision_request, tmp_path):
    host = FakeHost(fail={"import_disk": _error("import"), "delete_vm": _error("destroy")})
    workflow, messages = _workflow(host, provision_request, tmp_path)

    with pytest.raises(ProvisioningError) as exc:
        asyncio.run(workflow.run(wait=False))

    assert exc.value.step == "import disk"
    assert "import failed" in str(exc.value.cause)
    assert any(m.startswith("WARN Cleanup of VM 100 failed") for m in messages)


def test_unexpected_error_after_create_destroys_vm(provision_request, tmp_path, monkeypatch):
    async def broken_template(host, vmid, request):
        raise TemplateError("undefined variable")

    monkeypatch.setattr("pveprov.provisioning.workflow.configure_cloud_init", broken_template)
    host = FakeHost()
    workflow, messages = _workflow(host, provision_request, tmp_path)

    with pytest.raises(ProvisioningError) as exc:
        asyncio.run(workflow.run(wait=False))

    assert exc.value.step == "configure cloud-init"
    assert isinstance(exc.value.cause, TemplateError)
    assert host.vms == {}
    assert "WARN Destroying VM 100 after failed provisioning..." in messages


def test_attach_falls_back_to_alternate_name(provision_request, tmp_path):
    host = FakeHost(kind=StorageKind.ZFS, accept_volumes={"proxmox_data:100/vm-100-disk-0.raw"})
    workflow, messages = _workflow(host, provision_request, tmp_path)

    summary = asyncio.run(workflow.run(wait=False))

    assert host.vms[100]["scsi0"] == "proxmox_data:100/vm-100-disk-0.raw"
    assert summary.boot_volume == "proxmox_data:100/vm-100-disk-0.raw"
    assert any("trying next name" in m for m in messages)


def test_attach_failure_on_all_names_destroys_vm(provision_request, tmp_path):
    host = FakeHost(accept_volumes=set())
    workflow, _ = _workflow(host, provision_request, tmp_path)

    with pytest.raises(ProvisioningError) as exc:
        asyncio.run(workflow.run(wait=False))

    assert exc.value.step == "attach boot disk"
    assert 100 not in host.vms


def test_resize_failure_is_only_a_warning(provision_request, tmp_path):
    host = FakeHost(fail={"resize_vm_disk": _error("resize")})
    workflow, messages = _workflow(host, provision_request, tmp_path)

    summary = asyncio.run(workflow.run(wait=False))

    assert host.vms[100]["status"] == "running"
    assert summary.vmid == 100
    assert any(m.startswith("WARN Resizing disk to 10G failed") for m in messages)


def test_storage_describe_failure_creates_nothing(provision_request, tmp_path):
    host = FakeHost(fail={"get_storage_kind": _error("describe")})
    workflow, _ = _workflow(host, provision_request, tmp_path)

    with pytest.raises(ProvisioningError) as exc:
        asyncio.run(workflow.run(wait=False))

    assert exc.value.vmid is None
    assert host.vms == {}


def test_waits_for_ssh(provision_request, tmp_path, monkeypatch):
    async def fake_wait(ip, readiness, port=22):
        assert (ip, port) == ("192.168.3.50", 22)
        return 12.0

    monkeypatch.setattr("pveprov.provisioning.workflow.wait_until_ready", fake_wait)
    workflow, _ = _workflow(FakeHost(), provision_request, tmp_path)

    assert asyncio.run(workflow.run(wait=True)).ready_after == 12.0
