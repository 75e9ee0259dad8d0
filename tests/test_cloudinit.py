import asyncio
import stat

from pveprov.provisioning.cloudinit import GUEST_PACKAGES, configure_cloud_init, render_user_data, write_snippet

from conftest import PUBKEY, FakeHost


def _host_with_vm(vmid=100):
    host = FakeHost()
    host.vms[vmid] = {}
    return host


def test_user_data_content(provision_request):
    script = render_user_data(provision_request, 100, PUBKEY)
    lines = script.splitlines()

    assert lines[0] == "#!/bin/bash"
    assert "# Cloud-Init user data script for test-app (VM ID: 100)" in lines
    assert "echo root:secret123 | chpasswd" in lines
    assert "hostnamectl set-hostname test-app || echo \"WARNING: Failed to set hostname.\"" in lines
    assert PUBKEY in lines
    assert f"apt-get install -y {' '.join(GUEST_PACKAGES)} || echo \"WARNING: apt install failed.\"" in lines
    assert "timedatectl set-timezone Europe/Zurich" in lines
    assert "nameserver 192.168.3.1" in lines
    assert "worker_connections 20000;" in script
    assert script.endswith("\n")


def test_user_data_quotes_password(provision_request):
    request = provision_request.model_copy(update={"ci_password": "pa ss'$(reboot)"})

    script = render_user_data(request, 100, PUBKEY)

    assert "echo 'root:pa ss'\"'\"'$(reboot)' | chpasswd" in script.splitlines()


def test_user_data_firewall_order(provision_request):
    lines = render_user_data(provision_request, 100, PUBKEY).splitlines()
    ufw = [line for line in lines if line.startswith("ufw ") and "status" not in line]

    assert ufw == [
        "ufw allow from 172.105.94.119 to any port 22 proto tcp",
        "ufw allow from 116.203.216.1 to any port 22 proto tcp",
        "ufw allow from 5.161.184.133 to any port 22 proto tcp",
        "ufw allow from 192.168.3.0/24 to any port 22 proto tcp",
        "ufw deny 22/tcp comment 'Deny all other SSH access'",
        "ufw allow 80/tcp",
        "ufw allow 443/tcp",
        "ufw allow 8080/tcp",
        "ufw allow 8443/tcp",
        "ufw allow 60000:61000/udp",
        "ufw --force enable",
    ]


def test_user_data_is_deterministic(provision_request):
    assert render_user_data(provision_request, 100, PUBKEY) == render_user_data(provision_request, 100, PUBKEY)


def test_configure_writes_private_snippet_and_sets_fields(provision_request):
    host = _host_with_vm()

    path = asyncio.run(configure_cloud_init(host, 100, provision_request))

    assert path == provision_request.profile.snippets_dir / "custom-test-app.sh"
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert "echo root:secret123 | chpasswd" in path.read_text()
    vm = host.vms[100]
    assert vm["citype"] == "nocloud"
    assert vm["nameserver"] == "8.8.8.8 1.1.1.1"
    assert vm["cipassword"] == "secret123"
    assert vm["sshkeys"] == PUBKEY
    assert vm["serial0"] == "socket"
    assert vm["cicustom"] == "user=local:snippets/custom-test-app.sh"


def test_reprovision_overwrites_snippet_identically(provision_request):
    first = asyncio.run(configure_cloud_init(_host_with_vm(), 100, provision_request)).read_bytes()
    second = asyncio.run(configure_cloud_init(_host_with_vm(), 100, provision_request)).read_bytes()

    assert first == second
    assert sorted(p.name for p in provision_request.profile.snippets_dir.iterdir()) == ["custom-test-app.sh"]


def test_write_snippet_replaces_existing(tmp_path):
    target = tmp_path / "custom-x.sh"
    target.write_text("old")
    target.chmod(0o644)

    write_snippet(target, "new")

    assert target.read_text() == "new"
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
