"""Configuration management."""

from .manager import Config, ConfigManager
from ..models.config import SiteProfile

__all__ = ["Config", "ConfigManager", "SiteProfile"]
