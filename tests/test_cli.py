import functools
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from pveprov import __version__
from pveprov.api.exceptions import CommandError
from pveprov.cli.main import app
from pveprov.config import ConfigManager
from pveprov.provisioning.workflow import ProvisionWorkflow
from pveprov.ssh import RemoteSession

from conftest import FakeHost, FakeRunner

runner = CliRunner()


@pytest.fixture
def manager(tmp_path, site, monkeypatch):
    manager = ConfigManager(tmp_path / "cfg")
    manager.add_profile("lab", site)
    for module in ("provision", "restrict", "proxy", "diagnose", "config"):
        monkeypatch.setattr(f"pveprov.cli.{module}.ConfigManager", lambda: manager)
    return manager


@pytest.fixture
def host(tmp_path, monkeypatch):
    host = FakeHost()
    host.shell = SimpleNamespace(check_available=lambda: None)
    monkeypatch.setattr("pveprov.cli.provision.ProxmoxHost", lambda node=None: host)
    monkeypatch.setattr("pveprov.cli.diagnose.ProxmoxHost", lambda node=None: host)
    monkeypatch.setattr(
        "pveprov.cli.provision.ProvisionWorkflow",
        functools.partial(ProvisionWorkflow, lock_file=tmp_path / "vmid.lock"),
    )
    return host


@pytest.fixture
def ssh_runner(monkeypatch):
    fake = FakeRunner()
    for module in ("restrict", "proxy"):
        monkeypatch.setattr(
            f"pveprov.cli.{module}.remote_session",
            lambda ip, profile: RemoteSession(ip, profile.ssh, runner=fake),
        )
    return fake


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_provision_reports_missing_fields(manager, host):
    result = runner.invoke(app, ["provision", "--vm-name", "web"])

    assert result.exit_code == 1
    assert "Missing: --ip" in result.output
    assert "pveprov provision --help" in result.output
    assert host.vms == {}


def test_provision_rejects_zero_memory(manager, host):
    result = runner.invoke(app, ["provision", "-n", "web", "-i", "192.168.3.50", "-u", "a", "-p", "b", "-m", "0"])

    assert result.exit_code == 1
    assert "Memory must be greater than zero" in result.output


def test_provision_with_flags(manager, host):
    result = runner.invoke(
        app,
        ["provision", "--vm-name", "test_app", "--ip", "192.168.3.50", "--user", "admin",
         "--password", "secret123", "--no-wait"],
    )

    assert result.exit_code == 0, result.output
    assert "secret123" not in result.output
    assert "test-app" in result.output
    vm = host.vms[100]
    assert (vm["memory"], vm["cores"]) == (2048, 2)
    assert vm["cicustom"] == "user=local:snippets/custom-test-app.sh"


def test_provision_positional_and_flag_precedence(manager, host):
    result = runner.invoke(
        app,
        ["provision", "web_1", "192.168.3.60", "admin", "pw", "1024", "1", "20", "250", "--cpu", "4", "--no-wait"],
    )

    assert result.exit_code == 0, result.output
    vm = host.vms[250]
    assert vm["name"] == "web-1"
    assert vm["memory"] == 1024
    assert vm["cores"] == 4
    assert vm["resized"] == ("scsi0", "20G")


def test_provision_gateway_from_environment(manager, host):
    result = runner.invoke(
        app,
        ["provision", "-n", "web", "-i", "192.168.3.61", "-u", "a", "-p", "b", "--no-wait"],
        env={"GATEWAY": "192.168.3.254"},
    )

    assert result.exit_code == 0, result.output
    assert host.vms[100]["ipconfig0"] == "ip=192.168.3.61/24,gw=192.168.3.254,ip6=auto"


def test_provision_failure_exits_nonzero(manager, host):
    host.fail["start_vm"] = CommandError(["qm", "start"], 1, "start failed")

    result = runner.invoke(app, ["provision", "-n", "web", "-i", "192.168.3.62", "-u", "a", "-p", "b", "--no-wait"])

    assert result.exit_code == 1
    assert "start VM failed for VM 100" in result.output
    assert host.vms == {}


def test_restrict_unknown_role(manager, ssh_runner):
    result = runner.invoke(app, ["restrict", "192.168.3.50", "db"])

    assert result.exit_code == 1
    assert "Unknown role" in result.output
    assert ssh_runner.calls == []


def test_restrict_bastion(manager, ssh_runner):
    result = runner.invoke(app, ["restrict", "192.168.3.50", "bastian"])

    assert result.exit_code == 0, result.output
    assert ssh_runner.calls[0][-1] == "systemctl disable docker"


def test_proxy_add_rejects_port(manager, ssh_runner):
    result = runner.invoke(app, ["proxy", "add", "192.168.3.10", "example.ch", "app", "192.168.3.50", "70000"])

    assert result.exit_code == 1
    assert "Invalid application port number" in result.output
    assert ssh_runner.calls == []


def test_proxy_add(manager, ssh_runner):
    result = runner.invoke(app, ["proxy", "add", "192.168.3.10", "example.ch", "app", "192.168.3.50", "8080"])

    assert result.exit_code == 0, result.output
    assert ssh_runner.calls[-1][-1] == "systemctl reload nginx"


def test_diagnose_unknown_vm(manager, host):
    result = runner.invoke(app, ["diagnose", "404"])

    assert result.exit_code == 1
    assert "VM 404 does not exist" in result.output


def test_config_init_and_list(tmp_path, monkeypatch):
    manager = ConfigManager(tmp_path / "cfg")
    monkeypatch.setattr("pveprov.cli.config.ConfigManager", lambda: manager)

    result = runner.invoke(app, ["config", "init", "lab", "--bridge", "vmbr2", "--subnet", "10.0.0.0/24", "-y"])

    assert result.exit_code == 0, result.output
    assert manager.get_profile("lab").bridge == "vmbr2"
    assert manager.get().default_profile == "lab"

    listing = runner.invoke(app, ["config", "list"])
    assert "lab" in listing.output


def test_config_init_invalid_subnet(tmp_path, monkeypatch):
    manager = ConfigManager(tmp_path / "cfg")
    monkeypatch.setattr("pveprov.cli.config.ConfigManager", lambda: manager)

    result = runner.invoke(app, ["config", "init", "lab", "--subnet", "nope", "-y"])

    assert result.exit_code == 1
    assert manager.list_profiles() == []


def test_config_set_secret(manager):
    result = runner.invoke(app, ["config", "set-secret", "circleci_apikey", "--value", "k3y"])

    assert result.exit_code == 0, result.output
    assert ConfigManager(manager.config_dir).get_profile("lab").circleci_apikey == "k3y"
    assert "k3y" not in manager.config_file.read_text()
