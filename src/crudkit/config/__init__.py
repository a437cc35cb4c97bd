"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from crudkit.config import load_config, DatabaseProfile, CrudkitConfig
"""

from crudkit.config.loader import load_config
from crudkit.config.models import CrudkitConfig, DatabaseProfile, MigrationSettings

__all__ = ["load_config", "CrudkitConfig", "DatabaseProfile", "MigrationSettings"]
