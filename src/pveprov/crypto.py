"""Age encryption for secrets kept in the pveprov config file."""

import base64
from pathlib import Path

import pyrage

AGE_PREFIX = "AGE:"
IDENTITY_FILENAME = ".age-identity"


def _load_identity(config_dir: Path) -> pyrage.x25519.Identity:
    """Load the node's age identity, generating it on first use."""
    identity_file = config_dir / IDENTITY_FILENAME
    if identity_file.exists():
        return pyrage.x25519.Identity.from_str(identity_file.read_text().strip())
    config_dir.mkdir(parents=True, exist_ok=True)
    identity = pyrage.x25519.Identity.generate()
    identity_file.write_text(str(identity))
    identity_file.chmod(0o600)
    return identity


def encrypt(value: str, config_dir: Path) -> str:
    """Encrypt a plaintext value. Returns AGE:base64... string."""
    if is_encrypted(value):
        return value
    recipient = _load_identity(config_dir).to_public()
    return AGE_PREFIX + base64.b64encode(pyrage.encrypt(value.encode(), [recipient])).decode()


def decrypt(value: str, config_dir: Path) -> str:
    """Decrypt an AGE:-prefixed value. Plain values pass through."""
    if not is_encrypted(value):
        return value
    raw = base64.b64decode(value[len(AGE_PREFIX):])
    return pyrage.decrypt(raw, [_load_identity(config_dir)]).decode()


def is_encrypted(value: str) -> bool:
    """Check if a value is age-encrypted."""
    return value.startswith(AGE_PREFIX)
