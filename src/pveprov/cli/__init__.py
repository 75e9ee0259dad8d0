"""CLI commands."""

from . import config, diagnose, main, provision, proxy, restrict

__all__ = ["config", "diagnose", "main", "provision", "proxy", "restrict"]
