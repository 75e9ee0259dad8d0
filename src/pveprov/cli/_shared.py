"""Helpers shared by the command modules."""

from ..models.config import SiteProfile
from ..ssh import RemoteSession


def remote_session(host: str, profile: SiteProfile) -> RemoteSession:
    """SSH session to a guest using the profile's SSH settings."""
    return RemoteSession(host, profile.ssh)
