"""nautilus CLI: command-line interface for Nautilus.

Commands:
    serve           Run the dashboard API (and the sync scheduler)
    sync            Run one discover, enrich and persist cycle
    migrate         Apply database schema migrations
    seed            Load demo clusters and network data
    settings show   Print a stored settings document (secrets masked)
"""

from __future__ import annotations

import json
import logging
import sys

import click

from nautilus import __version__
from nautilus.config import NautilusConfig, load_config, resolve_database_url
from nautilus.db.connection import Database
from nautilus.db.migrations import run_migrations
from nautilus.errors import ConfigError, ReconcileError

# --- Defaults ---

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_cfg() -> NautilusConfig:
    """Load config from nautilus.yaml (auto-discover, never error)."""
    try:
        return load_config()
    except (OSError, ConfigError, ValueError):
        return NautilusConfig()


def _open_db(database_url: str | None, cfg: NautilusConfig) -> Database:
    """Open and migrate the database, exiting with status 1 on bad config."""
    try:
        db = Database.from_url(resolve_database_url(database_url, cfg))
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    run_migrations(db)
    return db


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default from nautilus.yaml, else INFO)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Nautilus: multi-cloud Kubernetes visibility for GKE, AKS and EKS."""
    cfg = _resolve_cfg()
    ctx.obj = cfg
    logging.basicConfig(level=(log_level or cfg.log_level).upper(), format=LOG_FORMAT)


# --- serve command ---


@cli.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Port number")
@click.option("--database-url", default=None, help="Database URL (default: $DATABASE_URL)")
@click.option("--dev", is_flag=True, help="Enable CORS for frontend dev server")
@click.option("--no-scheduler", is_flag=True, help="Do not schedule background syncs")
@click.option("--require-auth", is_flag=True, help="Enforce Okta bearer tokens when SSO is enabled")
@click.pass_obj
def serve(
    cfg: NautilusConfig,
    host: str | None,
    port: int | None,
    database_url: str | None,
    dev: bool,
    no_scheduler: bool,
    require_auth: bool,
) -> None:
    """Launch the dashboard API server."""
    try:
        import uvicorn
    except ImportError:
        click.echo("The dashboard requires uvicorn. Install it with: pip install uvicorn", err=True)
        sys.exit(1)

    from dashboard.backend.app import create_app
    from dashboard.backend.config import DashboardConfig

    try:
        url = resolve_database_url(database_url, cfg)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    host = host or cfg.host or DEFAULT_HOST
    port = port or cfg.port or DEFAULT_PORT
    config = DashboardConfig(
        host=host,
        port=port,
        database_url=url,
        dev_mode=dev,
        require_auth=require_auth,
        scheduler_enabled=cfg.scheduler_enabled and not no_scheduler,
    )
    app = create_app(config)

    click.echo(f"Nautilus Dashboard API: http://{host}:{port}")
    if dev:
        click.echo("  Dev mode: CORS enabled for http://localhost:5173")

    uvicorn.run(app, host=host, port=port, log_level="info")


# --- sync command ---


@cli.command()
@click.option("--database-url", default=None, help="Database URL (default: $DATABASE_URL)")
@click.option("--dry-run", is_flag=True, help="Discover and enrich without writing")
@click.option("--json-output", is_flag=True, help="Print the cycle report as JSON")
@click.pass_obj
def sync(cfg: NautilusConfig, database_url: str | None, dry_run: bool, json_output: bool) -> None:
    """Run one reconciliation cycle against every configured provider."""
    from nautilus.pipeline import SyncPipeline

    db = _open_db(database_url, cfg)
    try:
        report = SyncPipeline(db).run(persist=not dry_run)
    except ReconcileError as e:
        click.echo(click.style("ERROR", fg="red", bold=True) + f"  {e}", err=True)
        sys.exit(1)
    finally:
        db.close()

    if json_output:
        click.echo(json.dumps(report.model_dump(mode="json"), indent=2))
        return

    for p in report.providers:
        if p.skipped:
            click.echo(f"  {p.provider}: skipped (not configured)")
        elif not p.ok:
            click.echo(click.style(f"  {p.provider}: FAILED", fg="red") + f"  {p.error}")
        else:
            click.echo(f"  {p.provider}: {len(p.clusters)} cluster(s)")
    for e in report.enrichments:
        if not e.ok:
            click.echo(click.style(f"  {e.cluster_id}: not enriched", fg="yellow") + f"  {e.error}")
    if report.summary is not None:
        s = report.summary
        click.echo(
            f"Clusters: {s.clusters_inserted} new, {s.clusters_updated} updated; "
            f"namespaces: {s.namespaces_inserted} new, {s.namespaces_updated} updated, "
            f"{s.namespaces_deleted} removed",
        )
    else:
        click.echo(f"Dry run: {len(report.clusters)} cluster(s) collected, nothing written")


# --- migrate command ---


@cli.command()
@click.option("--database-url", default=None, help="Database URL (default: $DATABASE_URL)")
@click.pass_obj
def migrate(cfg: NautilusConfig, database_url: str | None) -> None:
    """Create or upgrade the database schema."""
    from nautilus.db.migrations import get_schema_version

    db = _open_db(database_url, cfg)
    click.echo(f"Schema version: {get_schema_version(db)}")
    db.close()


# --- seed command ---


@cli.command()
@click.option("--database-url", default=None, help="Database URL (default: $DATABASE_URL)")
@click.option("--file", "path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Seed file (default: bundled sample data)")
@click.pass_obj
def seed(cfg: NautilusConfig, database_url: str | None, path: str | None) -> None:
    """Load demo clusters, namespaces, dependencies and network resources."""
    from nautilus.seed import seed_database

    db = _open_db(database_url, cfg)
    try:
        counts = seed_database(db, path)
    except ReconcileError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        db.close()
    for kind, count in counts.items():
        click.echo(f"  {kind}: {count}")


# --- settings group ---


@cli.group()
def settings() -> None:
    """Inspect stored settings."""


@settings.command("show")
@click.argument(
    "kind",
    type=click.Choice(["cloud-credentials", "database", "app", "auth"]),
)
@click.option("--database-url", default=None, help="Database URL (default: $DATABASE_URL)")
@click.pass_obj
def settings_show(cfg: NautilusConfig, kind: str, database_url: str | None) -> None:
    """Print one settings document as JSON (secrets masked).

    The time of the last write goes to stderr so stdout stays valid JSON.
    """
    from nautilus.settings import store as settings_store

    db = _open_db(database_url, cfg)
    store = settings_store.SettingsStore(db)
    if kind == "cloud-credentials":
        key = settings_store.CLOUD_CREDENTIALS_KEY
        doc = store.load_cloud_credentials().masked()
    elif kind == "database":
        key = settings_store.DB_SETTINGS_KEY
        doc = store.load_database_settings().model_copy(update={"password": ""})
    elif kind == "app":
        key = settings_store.APP_SETTINGS_KEY
        doc = store.load_app_settings()
    else:
        key = settings_store.AUTH_SETTINGS_KEY
        doc = store.load_auth_settings()
    updated = store.updated_at(key)
    db.close()
    click.echo(f"Last updated: {updated}", err=True)
    click.echo(json.dumps(doc.model_dump(mode="json", by_alias=True), indent=2))


if __name__ == "__main__":
    cli()
