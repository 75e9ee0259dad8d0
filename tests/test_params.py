import pytest

from pveprov.api.exceptions import ValidationError
from pveprov.provisioning.params import RawParameters, resolve_request, sanitize_vm_name, vm_name_problems

from conftest import PUBKEY


def _raw(**overrides):
    values = {"vm_name": "test_app", "ip_address": "192.168.3.50", "ci_user": "admin", "ci_password": "secret123"}
    values.update(overrides)
    return RawParameters(**values)


def test_defaults_applied(site):
    request = resolve_request(_raw(), site)

    assert request.vm_name == "test-app"
    assert request.memory_mb == 2048
    assert request.cpu_cores == 2
    assert request.disk_gb == 10
    assert request.vm_id is None
    assert request.storage_id == "proxmox_data"
    assert request.bridge == "vmbr0"
    assert request.ip_config == "ip=192.168.3.50/24,gw=192.168.3.1,ip6=auto"
    assert request.snippet_name == "custom-test-app.sh"
    assert request.snippet_ref == "user=local:snippets/custom-test-app.sh"


def test_explicit_values_override_profile(site, pubkey_file):
    request = resolve_request(
        _raw(memory="4096", cpu="4", disk="32", vm_id="210", storage="local-zfs", gateway="10.0.0.1",
             subnet="10.0.0.0/16", ip_address="10.0.5.9", ssh_key=str(pubkey_file), timezone="UTC"),
        site,
    )

    assert (request.memory_mb, request.cpu_cores, request.disk_gb, request.vm_id) == (4096, 4, 32, 210)
    assert request.storage_id == "local-zfs"
    assert request.ip_config == "ip=10.0.5.9/16,gw=10.0.0.1,ip6=auto"
    assert request.timezone == "UTC"


def test_request_is_immutable(site):
    request = resolve_request(_raw(), site)

    with pytest.raises(Exception):
        request.memory_mb = 1


def test_missing_mandatory_fields_all_reported(site):
    with pytest.raises(ValidationError) as exc:
        resolve_request(RawParameters(memory="abc"), site)

    assert exc.value.errors == ["Missing: --vm-name", "Missing: --ip", "Missing: --user", "Missing: --password"]


@pytest.mark.parametrize("field", ["memory", "cpu", "disk", "vm_id"])
@pytest.mark.parametrize("value", ["0", "-1", "abc", "1.5"])
def test_numeric_fields_must_be_positive_integers(site, field, value):
    with pytest.raises(ValidationError):
        resolve_request(_raw(**{field: value}), site)


@pytest.mark.parametrize("ip", ["192.168.3", "192.168.3.256", "a.b.c.d", "192.168.3.50/24", "", "192.168.3.050"])
def test_invalid_ip_rejected(site, ip):
    with pytest.raises(ValidationError):
        resolve_request(_raw(ip_address=ip), site)


def test_numeric_errors_reported_before_address_errors(site):
    with pytest.raises(ValidationError) as exc:
        resolve_request(_raw(memory="0", ip_address="999.1.1.1"), site)

    assert len(exc.value.errors) == 1
    assert "Memory" in exc.value.errors[0]


@pytest.mark.parametrize("ip", ["192.168.3.1", "192.168.3.22", "10.1.1.1", "192.168.3.050"])
def test_strict_network_rejects_reserved_and_foreign_addresses(site, ip):
    with pytest.raises(ValidationError):
        resolve_request(_raw(ip_address=ip), site, strict_network=True)


def test_reserved_addresses_allowed_without_strict_network(site):
    assert resolve_request(_raw(ip_address="192.168.3.22"), site).ip_address == "192.168.3.22"


def test_missing_ssh_key(site, tmp_path):
    with pytest.raises(ValidationError) as exc:
        resolve_request(_raw(ssh_key=str(tmp_path / "nope.pub")), site)

    assert "SSH public key not found" in exc.value.errors[0]


def test_ssh_key_that_is_not_text(site, tmp_path):
    key = tmp_path / "binary.pub"
    key.write_bytes(b"\xff\xfe\x00bad")

    with pytest.raises(ValidationError) as exc:
        resolve_request(_raw(ssh_key=str(key)), site)

    assert "is not readable" in exc.value.errors[0]


def test_empty_ssh_key(site, tmp_path):
    key = tmp_path / "empty.pub"
    key.write_text("\n")

    with pytest.raises(ValidationError) as exc:
        resolve_request(_raw(ssh_key=str(key)), site)

    assert "is empty" in exc.value.errors[0]


def test_ssh_key_text_is_resolved(site):
    assert resolve_request(_raw(), site).ssh_public_key == PUBKEY


@pytest.mark.parametrize("name", ["_app", "app_", "web.example", "web app", "café"])
def test_invalid_names_rejected_with_original(site, name):
    with pytest.raises(ValidationError) as exc:
        resolve_request(_raw(vm_name=name), site)

    assert exc.value.errors[-1] == f"Original name: {name}"


@pytest.mark.parametrize("name", ["test_app", "a_b_c", "web-1", "X9"])
def test_sanitized_names_are_dns_labels(name):
    sanitized = sanitize_vm_name(name)

    assert "_" not in sanitized
    assert vm_name_problems(sanitized) == []
