"""Post-provision role profiles."""

from enum import Enum


class RoleProfile(str, Enum):
    """What a provisioned VM is used for."""

    APP = "app"
    BASTION = "bastion"

    @classmethod
    def parse(cls, value: str) -> "RoleProfile":
        """Parse a role name, accepting the historical "bastian" spelling."""
        normalized = value.strip().lower()
        if normalized == "bastian":
            normalized = "bastion"
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown role '{value}'. Use 'app' or 'bastion'.")
