"""Configuration manager for pveprov."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from ..api.exceptions import ConfigError
from ..crypto import decrypt, encrypt, is_encrypted
from ..models.config import SiteProfile

_SECRET_FIELDS = ("circleci_apikey",)


class Config(BaseModel):
    """Main configuration model."""

    default_profile: str | None = None
    profiles: dict[str, SiteProfile] = Field(default_factory=dict)


class ConfigManager:
    """Manage pveprov configuration."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize config manager.

        Args:
            config_dir: Custom config directory (defaults to ~/.config/pveprov)
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pveprov"
        self.config_dir = config_dir
        self.config_file = self.config_dir / "config.yaml"
        self._config: Config | None = None

    def _ensure_config_dir(self) -> None:
        """Create config directory if it doesn't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.config_dir, 0o700)

    def exists(self) -> bool:
        """Check if config file exists.

        Returns:
            True if config file exists
        """
        return self.config_file.exists()

    def load(self) -> Config:
        """Load configuration from file.

        A missing file yields an empty configuration, so built-in defaults apply.

        Returns:
            Loaded configuration

        Raises:
            ConfigError: If the config file is invalid
        """
        if not self.exists():
            self._config = Config()
            return self._config

        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f) or {}
            self._config = Config(**data)
            # Re-encrypt any secret that was written to disk in plaintext
            if self._decrypt_config(self._config):
                self.save(self._config)
            return self._config
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Failed to load config: {e}")

    def save(self, config: Config) -> None:
        """Save configuration to file.

        Args:
            config: Configuration to save

        Raises:
            ConfigError: If save fails
        """
        self._ensure_config_dir()
        try:
            data = config.model_dump(mode="json", exclude_none=True)
            self._encrypt_data(data)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.chmod(self.config_file, 0o600)
            self._config = config
        except Exception as e:
            raise ConfigError(f"Failed to save config: {e}")

    def get(self) -> Config:
        """Get current configuration, loading if necessary.

        Returns:
            Current configuration
        """
        if self._config is None:
            self._config = self.load()
        return self._config

    def get_profile(self, name: str | None = None) -> SiteProfile:
        """Get a specific profile, the default one, or built-in defaults.

        Args:
            name: Profile name (uses default if None)

        Returns:
            Profile configuration

        Raises:
            ConfigError: If a named profile is not found
        """
        config = self.get()

        if name is None:
            if config.default_profile is None:
                return SiteProfile()
            name = config.default_profile

        if name not in config.profiles:
            available = ", ".join(config.profiles.keys()) or "none"
            raise ConfigError(f"Profile '{name}' not found. Available profiles: {available}")

        return config.profiles[name]

    def add_profile(self, name: str, profile: SiteProfile) -> None:
        """Add or update a profile.

        Args:
            name: Profile name
            profile: Profile configuration
        """
        config = self.get()
        config.profiles[name] = profile

        if config.default_profile is None:
            config.default_profile = name

        self.save(config)

    def remove_profile(self, name: str) -> None:
        """Remove a profile.

        Args:
            name: Profile name

        Raises:
            ConfigError: If profile not found
        """
        config = self.get()

        if name not in config.profiles:
            raise ConfigError(f"Profile '{name}' not found")

        del config.profiles[name]

        if config.default_profile == name:
            config.default_profile = next(iter(config.profiles.keys()), None)

        self.save(config)

    def set_default_profile(self, name: str) -> None:
        """Set the default profile.

        Args:
            name: Profile name

        Raises:
            ConfigError: If profile not found
        """
        config = self.get()

        if name not in config.profiles:
            raise ConfigError(f"Profile '{name}' not found")

        config.default_profile = name
        self.save(config)

    def list_profiles(self) -> list[str]:
        """List all profile names."""
        return list(self.get().profiles.keys())

    def _decrypt_config(self, config: Config) -> bool:
        """Decrypt secrets in-place. Returns True if plaintext was found (needs re-save)."""
        needs_save = False
        for profile in config.profiles.values():
            for field in _SECRET_FIELDS:
                value = getattr(profile, field)
                if not value:
                    continue
                if is_encrypted(value):
                    setattr(profile, field, decrypt(value, self.config_dir))
                else:
                    needs_save = True
        return needs_save

    def _encrypt_data(self, data: dict) -> None:
        """Encrypt secrets in the serialized dict before writing."""
        for profile in data.get("profiles", {}).values():
            for field in _SECRET_FIELDS:
                if profile.get(field):
                    profile[field] = encrypt(profile[field], self.config_dir)
