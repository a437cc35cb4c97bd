"""Adapter factory and profile resolution.

Supports two configuration modes:
1. Profile mode (crudkit.toml): named profiles, selected explicitly, by
   ``{prefix}DB_PROFILE`` or by ``default_profile``.
2. URL mode (no config file): a single ``{prefix}DATABASE_URL``.

Usage:
    from crudkit.factory import get_adapter, load_models

    adapter = get_adapter(profile_name="local")
    models = load_models(["app.models:User", "app.models"])
"""

import importlib
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any
from urllib.parse import quote

from crudkit.adapters.sql import SQLAdapter
from crudkit.config.loader import load_config
from crudkit.config.models import CrudkitConfig, DatabaseProfile
from crudkit.errors import ConfigurationError
from crudkit.schema.models import Model


class ProfileNotFoundError(ConfigurationError):
    """Raised when no database profile (or URL) is configured."""


# ============================================================================
# Profile Resolution
# ============================================================================


def get_active_profile_name(
    config: CrudkitConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> str:
    """Resolve which profile to use.

    Priority:
    1. Explicit ``profile_name``
    2. ``{env_prefix}DB_PROFILE`` env var
    3. ``default_profile`` from the config file
    4. The only profile, when exactly one is defined

    Raises:
        ProfileNotFoundError: If no profile can be resolved or the resolved
            name is not defined.
    """
    name = profile_name or os.environ.get(f"{env_prefix}DB_PROFILE") or config.default_profile
    if name is None and len(config.profiles) == 1:
        name = next(iter(config.profiles))

    if name is None:
        raise ProfileNotFoundError(
            "No database profile selected.\n"
            f"Pass --profile, set {env_prefix}DB_PROFILE, or add default_profile "
            "to crudkit.toml."
        )
    if name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{name}' not found. Available profiles: {available}"
        )
    return name


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config.

    Returns:
        Connection URL with the ``[YOUR-PASSWORD]`` placeholder replaced
        by the URL-quoted ``db_password``.
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_database_url(
    profile_name: str | None = None,
    config_path: Path | str | None = None,
    env_prefix: str = "",
) -> str:
    """Connection URL from the config profile, else ``{prefix}DATABASE_URL``.

    Raises:
        ProfileNotFoundError: If there is no config file and no
            ``DATABASE_URL``, or the profile cannot be resolved.
        ValueError: If the config file is invalid.
    """
    try:
        config = load_config(config_path)
    except FileNotFoundError:
        url = os.environ.get(f"{env_prefix}DATABASE_URL")
        if url and profile_name is None:
            return url
        raise ProfileNotFoundError(
            f"No crudkit.toml found and {env_prefix}DATABASE_URL is not set."
        ) from None

    name = get_active_profile_name(config, profile_name, env_prefix)
    return resolve_url(config.profiles[name])


# ============================================================================
# Database Adapter Factory
# ============================================================================


def get_adapter(
    database_url: str | None = None,
    profile_name: str | None = None,
    config_path: Path | str | None = None,
    env_prefix: str = "",
    **engine_kwargs: Any,
) -> SQLAdapter:
    """Create a ``SQLAdapter`` from a URL or the resolved profile.

    A new adapter (and connection pool) is created on every call.

    Example:
        >>> adapter = get_adapter("sqlite:///app.db")
        >>> adapter = get_adapter(profile_name="local")
    """
    if database_url is None:
        database_url = get_database_url(profile_name, config_path, env_prefix)
    return SQLAdapter(database_url, **engine_kwargs)


# ============================================================================
# Model Loading
# ============================================================================


def _import_model(path: str) -> list[type[Model]]:
    module_name, sep, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import models module '{module_name}': {e}") from e

    if sep:
        obj = getattr(module, attr, None)
        if not (isinstance(obj, type) and issubclass(obj, Model)):
            raise ConfigurationError(f"'{path}' is not a crudkit Model")
        return [obj]

    declared = getattr(module, "MODELS", None)
    if declared is None:
        raise ConfigurationError(
            f"Module '{module_name}' has no MODELS list; use '{module_name}:ClassName'"
        )
    models = list(declared)
    for obj in models:
        if not (isinstance(obj, type) and issubclass(obj, Model)):
            raise ConfigurationError(f"{module_name}.MODELS contains a non-Model: {obj!r}")
    return models


def load_models(paths: Iterable[str]) -> list[type[Model]]:
    """Import models from ``pkg.mod:Class`` paths or modules with ``MODELS``.

    Duplicates are dropped, first occurrence wins.

    Raises:
        ConfigurationError: If a module cannot be imported or a path does
            not name a model.
    """
    models: list[type[Model]] = []
    for path in paths:
        for model in _import_model(path.strip()):
            if model not in models:
                models.append(model)
    return models
