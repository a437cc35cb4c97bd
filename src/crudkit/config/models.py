"""Pydantic models for crudkit configuration."""

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from crudkit.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "mysql"


class MigrationSettings(BaseModel):
    """``[migrations]`` section of crudkit.toml."""

    directory: str = "migrations"
    table: str = "schema_migrations"
    disambiguate: bool = True
    models: list[str] = Field(default_factory=list)


class CrudkitConfig(BaseModel):
    """Complete configuration from crudkit.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    default_profile: str | None = None
    migrations: MigrationSettings = Field(default_factory=MigrationSettings)
