"""CLI for migration generation and management.

Usage:
    crudkit profiles
    crudkit generate --models app.models
    crudkit up
    crudkit rollback --version 20251117195835
    crudkit status
    crudkit drop --confirm
    crudkit refresh --confirm

Commands:
    profiles  - List configured database profiles
    generate  - Generate create-table migrations for models without one
    up        - Apply pending migrations
    rollback  - Roll back the latest (or a given) migration version
    status    - Show applied state of each migration
    drop      - Drop all model tables
    refresh   - Drop all model tables and re-apply migrations
"""

import argparse
import logging
import sys

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from crudkit.adapters.sql import SQLAdapter
from crudkit.config.loader import DEFAULT_CONFIG_FILE, load_config
from crudkit.config.models import CrudkitConfig
from crudkit.errors import CrudkitError
from crudkit.factory import get_adapter, get_database_url, load_models
from crudkit.log import configure_logging
from crudkit.migrations.generator import MigrationGenerator
from crudkit.migrations.ledger import MigrationLedger
from crudkit.migrations.registry import MigrationRegistry
from crudkit.migrations.runner import Migrator
from crudkit.schema.models import Model

console = Console()
logger = logging.getLogger(__name__)


# ============================================================================
# Shared helpers
# ============================================================================


def _load_config(args: argparse.Namespace) -> CrudkitConfig:
    """Config from ``--config``; an absent default file yields an empty config."""
    if args.config:
        return load_config(args.config)
    try:
        return load_config()
    except FileNotFoundError:
        return CrudkitConfig()


def _adapter(args: argparse.Namespace) -> SQLAdapter:
    url = get_database_url(
        profile_name=args.profile,
        config_path=args.config,
        env_prefix=args.env_prefix,
    )
    return get_adapter(url)


def _models(args: argparse.Namespace, config: CrudkitConfig) -> list[type[Model]]:
    paths = getattr(args, "models", None) or config.migrations.models
    if not paths:
        raise CrudkitError(
            "No models given. Pass --models or set [migrations] models in "
            f"{DEFAULT_CONFIG_FILE}."
        )
    return load_models(paths)


def _migrator(adapter: SQLAdapter, config: CrudkitConfig) -> Migrator:
    """Migrator with every artifact in the migrations directory registered."""
    settings = config.migrations
    registry = MigrationRegistry()
    registry.discover(settings.directory)
    registry.load_sql(settings.directory)
    return Migrator(
        adapter,
        registry,
        disambiguate=settings.disambiguate,
        table=settings.table,
    )


# ============================================================================
# Commands
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from crudkit.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if crudkit.toml not found.
    """
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        is_default = name == config.default_profile
        marker = "[bold green]*[/bold green]" if is_default else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if is_default else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)
    if config.default_profile:
        console.print("\n[bold green]*[/bold green] = default profile")
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Generate migrations for models that have none yet.

    Returns:
        0 when every model was generated or skipped, 1 on any error.
    """
    config = _load_config(args)
    models = _models(args, config)

    adapter = None if args.offline else _adapter(args)
    try:
        ledger = None
        if adapter is not None:
            ledger = MigrationLedger(
                adapter,
                table=config.migrations.table,
                disambiguate=config.migrations.disambiguate,
            )
        generator = MigrationGenerator(
            config.migrations.directory, ledger=ledger, client=adapter
        )
        result = generator.generate(models)
    finally:
        if adapter is not None:
            adapter.close()

    for name in result.generated:
        console.print(f"[green]+[/green] {name}")
    for table in result.skipped:
        console.print(f"[dim]= {table} (exists)[/dim]")
    for table, error in result.errors.items():
        console.print(f"[bold red]x[/bold red] {table}: {escape(error)}")

    if not result.generated and not result.errors:
        console.print("[dim]Nothing to generate.[/dim]")
    return 0 if result.success else 1


def cmd_up(args: argparse.Namespace) -> int:
    """Apply pending migrations from the migrations directory."""
    config = _load_config(args)
    adapter = _adapter(args)
    try:
        applied = _migrator(adapter, config).apply_pending()
    finally:
        adapter.close()

    for migration in applied:
        console.print(f"[green]v[/green] {migration}")
    console.print(f"Applied {len(applied)} migration(s).")
    return 0


def cmd_rollback(args: argparse.Namespace) -> int:
    """Roll back the latest migration, or an explicit version."""
    config = _load_config(args)
    adapter = _adapter(args)
    try:
        rolled_back = _migrator(adapter, config).rollback(args.version, args.name)
    finally:
        adapter.close()

    for migration in rolled_back:
        console.print(f"[yellow]<[/yellow] {migration}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show applied state of each migration."""
    config = _load_config(args)
    adapter = _adapter(args)
    try:
        statuses = _migrator(adapter, config).status()
    finally:
        adapter.close()

    table = Table(title="Migrations", show_header=True, header_style="bold")
    table.add_column("Version")
    table.add_column("Name")
    table.add_column("Applied")

    for status in statuses:
        applied = (
            f"[green]{status.applied_at or 'yes'}[/green]"
            if status.applied
            else "[yellow]pending[/yellow]"
        )
        table.add_row(status.version, status.name, applied)

    console.print(table)
    return 0


def _preview_drop(models: list[type[Model]]) -> None:
    console.print("[bold]Tables to drop:[/bold]")
    for model in models:
        console.print(f"  - {model.table_name()}")
    console.print("\n[dim]Run with --confirm to proceed.[/dim]")


def cmd_drop(args: argparse.Namespace) -> int:
    """Drop every model table (preview unless --confirm)."""
    config = _load_config(args)
    models = _models(args, config)
    if not args.confirm:
        _preview_drop(models)
        return 0

    adapter = _adapter(args)
    try:
        dropped = _migrator(adapter, config).drop_all(models)
    finally:
        adapter.close()

    console.print(f"[bold green]v[/bold green] Dropped {len(dropped)} table(s).")
    return 0


def cmd_refresh(args: argparse.Namespace) -> int:
    """Drop every model table and re-apply migrations (preview unless --confirm)."""
    config = _load_config(args)
    models = _models(args, config)
    if not args.confirm:
        _preview_drop(models)
        return 0

    adapter = _adapter(args)
    try:
        applied = _migrator(adapter, config).refresh(models)
    finally:
        adapter.close()

    console.print(
        f"[bold green]v[/bold green] Refreshed {len(models)} table(s), "
        f"applied {len(applied)} migration(s)."
    )
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crudkit",
        description="Migration generation and management for crudkit models",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to config file (default: ./{DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument("--profile", default=None, help="Database profile to use")
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_profiles = subparsers.add_parser("profiles", help="List configured profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_generate = subparsers.add_parser("generate", help="Generate migrations for models")
    p_generate.add_argument(
        "--models",
        nargs="+",
        help="Model paths (pkg.mod:Class) or modules defining MODELS",
    )
    p_generate.add_argument(
        "--offline",
        action="store_true",
        help="Skip database checks (only existing artifacts prevent generation)",
    )
    p_generate.set_defaults(func=cmd_generate)

    p_up = subparsers.add_parser("up", help="Apply pending migrations")
    p_up.set_defaults(func=cmd_up)

    p_rollback = subparsers.add_parser("rollback", help="Roll back a migration version")
    p_rollback.add_argument("--version", default=None, help="Version to roll back")
    p_rollback.add_argument("--name", default=None, help="Migration name within the version")
    p_rollback.set_defaults(func=cmd_rollback)

    p_status = subparsers.add_parser("status", help="Show migration status")
    p_status.set_defaults(func=cmd_status)

    for command, func, help_text in (
        ("drop", cmd_drop, "Drop all model tables"),
        ("refresh", cmd_refresh, "Drop all model tables and re-apply migrations"),
    ):
        p = subparsers.add_parser(command, help=help_text)
        p.add_argument("--models", nargs="+", help="Model paths (default: from config)")
        p.add_argument("--confirm", action="store_true", help="Actually drop tables")
        p.set_defaults(func=func)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, json_logs=args.json_logs)

    try:
        return args.func(args)
    except (CrudkitError, FileNotFoundError, ValueError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
