"""TOML configuration loader."""

import tomllib
from pathlib import Path

from crudkit.config.models import CrudkitConfig, DatabaseProfile, MigrationSettings

DEFAULT_CONFIG_FILE = "crudkit.toml"


def load_config(config_path: Path | str | None = None) -> CrudkitConfig:
    """Load crudkit configuration from a TOML file.

    Args:
        config_path: Path to crudkit.toml (default: ``crudkit.toml`` in
            the current working directory).

    Returns:
        CrudkitConfig with all profiles and migration settings.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config format is invalid.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_FILE} with at least one [profiles.<name>] section."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_path.name}: {e}") from e

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        if not isinstance(profile_data, dict) or "url" not in profile_data:
            raise ValueError(f"Profile '{name}' in {config_path.name} has no url")
        profiles[name] = DatabaseProfile(**profile_data)

    default_profile = data.get("default_profile")
    if default_profile is not None and default_profile not in profiles:
        raise ValueError(
            f"default_profile '{default_profile}' is not defined in {config_path.name}"
        )

    return CrudkitConfig(
        profiles=profiles,
        default_profile=default_profile,
        migrations=MigrationSettings(**data.get("migrations", {})),
    )
