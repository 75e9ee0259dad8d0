import pytest
import yaml

from pveprov.api.exceptions import ConfigError
from pveprov.config import ConfigManager, SiteProfile


def test_missing_file_gives_builtin_defaults(tmp_path):
    manager = ConfigManager(tmp_path / "cfg")

    profile = manager.get_profile()

    assert profile == SiteProfile()
    assert profile.storage == "proxmox_data"
    assert profile.gateway == "192.168.3.1"
    assert not manager.exists()


def test_add_profile_sets_default_and_permissions(tmp_path):
    manager = ConfigManager(tmp_path / "cfg")

    manager.add_profile("lab", SiteProfile(bridge="vmbr1"))

    assert manager.get().default_profile == "lab"
    assert manager.get_profile().bridge == "vmbr1"
    assert (manager.config_file.stat().st_mode & 0o777) == 0o600
    assert (manager.config_dir.stat().st_mode & 0o777) == 0o700


def test_profile_roundtrip_through_file(tmp_path):
    ConfigManager(tmp_path).add_profile("lab", SiteProfile(subnet="10.0.0.0/16", memory_mb=4096))

    profile = ConfigManager(tmp_path).get_profile("lab")

    assert profile.subnet == "10.0.0.0/16"
    assert profile.memory_mb == 4096


def test_unknown_profile(tmp_path):
    manager = ConfigManager(tmp_path)
    manager.add_profile("lab", SiteProfile())

    with pytest.raises(ConfigError, match="Available profiles: lab"):
        manager.get_profile("prod")


def test_remove_default_moves_default(tmp_path):
    manager = ConfigManager(tmp_path)
    manager.add_profile("a", SiteProfile())
    manager.add_profile("b", SiteProfile())

    manager.remove_profile("a")

    assert manager.get().default_profile == "b"


def test_invalid_yaml(tmp_path):
    (tmp_path / "config.yaml").write_text("profiles: [unclosed")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        ConfigManager(tmp_path).load()


def test_invalid_subnet_rejected(tmp_path):
    (tmp_path / "config.yaml").write_text(yaml.safe_dump({"profiles": {"lab": {"subnet": "nonsense"}}}))

    with pytest.raises(ConfigError):
        ConfigManager(tmp_path).load()


def test_secret_encrypted_on_disk(tmp_path):
    manager = ConfigManager(tmp_path)
    manager.add_profile("lab", SiteProfile(circleci_apikey="topsecret"))

    on_disk = yaml.safe_load(manager.config_file.read_text())

    assert on_disk["profiles"]["lab"]["circleci_apikey"].startswith("AGE:")
    assert "topsecret" not in manager.config_file.read_text()
    assert ConfigManager(tmp_path).get_profile("lab").circleci_apikey == "topsecret"


def test_plaintext_secret_reencrypted_on_load(tmp_path):
    (tmp_path / "config.yaml").write_text(
        yaml.safe_dump({"default_profile": "lab", "profiles": {"lab": {"circleci_apikey": "plain"}}})
    )

    profile = ConfigManager(tmp_path).get_profile()

    assert profile.circleci_apikey == "plain"
    assert "plain" not in (tmp_path / "config.yaml").read_text()
