"""CLI commands for runner monitoring."""

import json
import logging
import sqlite3
import sys
import uuid
from datetime import UTC, datetime
from pathlib import Path

import click
import structlog

from runner_monitor import __version__
from runner_monitor.config import (
    ConfigLoader,
    ConfigValidationError,
    EffectiveConfig,
    MissingConfigurationError,
    resolve_effective_config,
)
from runner_monitor.fetch import FetchMetrics, HttpFetcher
from runner_monitor.github import GitHubRunnerClient
from runner_monitor.notify import NotificationDispatcher
from runner_monitor.observability import (
    bind_pass_context,
    clear_pass_context,
    configure_logging,
)
from runner_monitor.query import (
    get_runner_history,
    list_runners,
    outage_duration_minutes,
    repo_id_from,
    serve as serve_slack_endpoint,
)
from runner_monitor.reconcile import PassResult, ReconcileMetrics, SyncCoordinator
from runner_monitor.reconcile.classifier import status_text
from runner_monitor.settings import get_settings
from runner_monitor.store import StateStore, StateStoreError, StoreMetrics


logger = structlog.get_logger()

STATE_OPTION_HELP = "Path to SQLite state database (default: RUNNER_MONITOR_STATE_PATH)."


def _state_path(state_path: Path | None) -> Path:
    return state_path or get_settings().state_path


def _existing_state_path(state_path: Path | None) -> Path:
    """Resolve the state database for a read-only command.

    Exits with status 1 if it does not exist, so a mistyped path never
    leaves an empty database behind.
    """
    path = _state_path(state_path)
    if not path.is_file():
        click.echo(f"State database not found: {path}", err=True)
        sys.exit(1)
    return path


def _load_configuration(
    config_path: Path | None,
    pass_id: str,
    log: structlog.typing.FilteringBoundLogger,
) -> EffectiveConfig:
    """Load and validate configuration, exit on failure.

    Args:
        config_path: Optional monitor.yaml path.
        pass_id: Pass identifier.
        log: Logger for error reporting.

    Returns:
        The effective configuration.
    """
    try:
        monitor_config = (
            ConfigLoader(pass_id=pass_id).load(config_path) if config_path else None
        )
        effective = resolve_effective_config(get_settings(), monitor_config)
    except ConfigValidationError as e:
        log.warning("config_load_failed", error=str(e), validation_errors=e.errors)
        click.echo(f"Configuration validation failed ({e.file_path}):", err=True)
        for error in e.errors:
            click.echo(f"  - {error['loc']}: {error['msg']}", err=True)
        sys.exit(1)
    except MissingConfigurationError as e:
        log.warning("config_missing", name=e.name)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    log.info(
        "config_validated",
        repositories=[repo.slug for repo in effective.active_repositories],
        notifications_enabled=effective.notifications_enabled,
        webhook_configured=effective.slack_webhook_url is not None,
    )
    return effective


def _echo_pass_summary(result: PassResult) -> None:
    click.echo(f"Pass {result.pass_id} complete.")
    for repo in result.repositories:
        click.echo(
            f"  {repo.slug}: {repo.runners_observed} runners, "
            f"{repo.runners_created} new, {repo.runners_swept} missing, "
            f"{repo.outages_opened} outages opened, "
            f"{repo.outages_resolved} resolved"
        )
    for failure in result.failures:
        click.echo(f"  {failure.slug}: FAILED ({failure.error_type}) {failure.message}")


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """GitHub self-hosted runner monitor CLI."""


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to monitor.yaml (repositories, notifications, fetch tuning).",
)
@click.option(
    "--state",
    "state_path",
    type=click.Path(path_type=Path),
    default=None,
    help=STATE_OPTION_HELP,
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON format for logs (default: true).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
@click.option(
    "--metrics",
    "print_metrics",
    is_flag=True,
    help="Print Prometheus-format metrics after the pass.",
)
def reconcile(
    config_path: Path | None,
    state_path: Path | None,
    json_logs: bool,
    verbose: bool,
    print_metrics: bool,
) -> None:
    """Run one reconciliation pass over all configured repositories.

    Intended to be invoked by an external scheduler every few minutes.
    Exits 1 if configuration is missing or the state store fails; failures
    of individual repositories are logged and do not fail the pass.
    """
    pass_id = str(uuid.uuid4())
    configure_logging(
        level=logging.DEBUG if verbose else logging.INFO, json_format=json_logs
    )
    bind_pass_context(pass_id)
    log = logger.bind(component="cli", command="reconcile", pass_id=pass_id)

    try:
        effective = _load_configuration(config_path, pass_id, log)
        http_client = HttpFetcher(effective.fetch, pass_id=pass_id)

        try:
            with StateStore(_state_path(state_path), pass_id=pass_id) as store:
                coordinator = SyncCoordinator(
                    store=store,
                    runner_client=GitHubRunnerClient(
                        http_client, effective.github_token, pass_id=pass_id
                    ),
                    dispatcher=NotificationDispatcher(
                        http_client,
                        effective.slack_webhook_url,
                        enabled=effective.notifications_enabled,
                        pass_id=pass_id,
                    ),
                    pass_id=pass_id,
                )
                result = coordinator.run(effective.repositories)
        except (StateStoreError, sqlite3.Error) as e:
            log.exception("pass_failed", error=str(e))
            click.echo(f"Pass failed: {e}", err=True)
            sys.exit(1)
    finally:
        clear_pass_context()

    _echo_pass_summary(result)

    if print_metrics:
        click.echo(ReconcileMetrics.get_instance().to_prometheus_format())
        click.echo(FetchMetrics.get_instance().to_prometheus_format())
        click.echo(StoreMetrics.get_instance().to_prometheus_format())


@cli.command()
@click.argument("repository")
@click.argument("runner_name")
@click.option(
    "--state",
    "state_path",
    type=click.Path(path_type=Path),
    default=None,
    help=STATE_OPTION_HELP,
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def history(
    repository: str,
    runner_name: str,
    state_path: Path | None,
    json_output: bool,
) -> None:
    """Show the five most recent outages of a runner.

    REPOSITORY is ``owner/name`` or the bare repository name.
    """
    configure_logging(level=logging.WARNING, json_format=False)
    repo_id = repo_id_from(repository)
    now = datetime.now(UTC)

    with StateStore(_existing_state_path(state_path)) as store:
        runner_history = get_runner_history(store, repo_id, runner_name)

    if runner_history is None:
        click.echo(f'No runner named "{runner_name}" in {repo_id}', err=True)
        sys.exit(1)

    if json_output:
        output = {
            "runner": runner_history.runner.model_dump(mode="json"),
            "outages": [
                {
                    **outage.model_dump(mode="json"),
                    "duration_minutes": outage_duration_minutes(outage, now),
                }
                for outage in runner_history.outages
            ],
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo(f"{runner_history.runner.name} Recent Outages")
    click.echo("=" * 40)
    if not runner_history.outages:
        click.echo("  No outages recorded.")
    for outage in runner_history.outages:
        resolved = outage.resolved_at.isoformat() if outage.resolved_at else "Ongoing"
        click.echo(
            f"  #{outage.outage_id} {status_text(outage.status)}: "
            f"{outage.started_at.isoformat()} -> {resolved} "
            f"({outage_duration_minutes(outage, now)} minutes)"
        )


@cli.command()
@click.argument("repository")
@click.option(
    "--state",
    "state_path",
    type=click.Path(path_type=Path),
    default=None,
    help=STATE_OPTION_HELP,
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def status(repository: str, state_path: Path | None, json_output: bool) -> None:
    """Show the status of every runner of a repository.

    REPOSITORY is ``owner/name`` or the bare repository name.
    """
    configure_logging(level=logging.WARNING, json_format=False)
    repo_id = repo_id_from(repository)

    with StateStore(_existing_state_path(state_path)) as store:
        runners = list_runners(store, repo_id)

    if json_output:
        click.echo(json.dumps([r.model_dump(mode="json") for r in runners], indent=2))
        return

    click.echo(f"{repo_id} Runner Status")
    click.echo("=" * 40)
    for runner in runners:
        click.echo(
            f"  {runner.name}: {status_text(runner.status)} "
            f"(last seen {runner.last_seen_at.isoformat()}, "
            f"first seen {runner.first_seen_at.isoformat()})"
        )


@cli.command("db-stats")
@click.option(
    "--state",
    "state_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to SQLite state database.",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def db_stats(state_path: Path, json_output: bool) -> None:
    """Display state database statistics.

    Shows item counts, schema version, and the last successful pass.
    """
    configure_logging(level=logging.WARNING, json_format=False)

    with StateStore(db_path=state_path) as store:
        stats = store.get_stats()
        schema_version = store.get_schema_version()
        last_success = store.get_last_successful_pass_finished_at()

    if json_output:
        output = {
            "schema_version": schema_version,
            "items": stats,
            "last_successful_pass": last_success.isoformat() if last_success else None,
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo("State Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Schema Version: {schema_version}")
    click.echo(
        f"  Last Successful Pass: {last_success.isoformat() if last_success else 'None'}"
    )
    click.echo("")
    click.echo("Item Counts:")
    for item_type, count in sorted(stats.items()):
        click.echo(f"  {item_type}: {count}")


@cli.command()
@click.option(
    "--state",
    "state_path",
    type=click.Path(path_type=Path),
    default=None,
    help=STATE_OPTION_HELP,
)
def purge(state_path: Path | None) -> None:
    """Delete outage records past their 30-day retention."""
    configure_logging(json_format=False)

    with StateStore(_existing_state_path(state_path)) as store:
        purged = store.purge_expired()

    click.echo(f"Purged {purged} expired items.")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8080, show_default=True, type=int, help="Bind port.")
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON format for logs (default: true).",
)
def serve(host: str, port: int, json_logs: bool) -> None:
    """Serve the Slack slash-command endpoint (/slack/commands)."""
    configure_logging(json_format=json_logs)
    settings = get_settings()

    if not settings.slack_signing_secret:
        click.echo("Error: SLACK_SIGNING_SECRET is not set", err=True)
        sys.exit(1)

    serve_slack_endpoint(settings, host=host, port=port)


if __name__ == "__main__":
    cli()
