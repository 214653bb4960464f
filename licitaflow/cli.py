"""Typer based command line entry points for LicitaFlow."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from licitaflow.config import AppSettings, resolve_settings
from licitaflow.core.errors import ConfigError, LicitaFlowError
from licitaflow.core.logger import get_logger, set_level
from licitaflow.core.pipeline import IngestionPipeline, RunResult
from licitaflow.services.submission.client import SubmissionClient
from licitaflow_persist.stores.base_store import StoreError
from licitaflow_persist.stores.dedup_store import DedupStore

app = typer.Typer(help="Ingest tender spreadsheets into the remote registry.")

_STATE: Dict[str, Optional[str]] = {"log_level": None}

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="YAML settings file holding a 'profiles' section.",
    exists=True,
    readable=True,
    dir_okay=False,
    resolve_path=True,
)
PROFILE_OPTION = typer.Option(None, "--profile", "-p", help="Profile name inside the settings file.")


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING); overrides LOG_LEVEL.",
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    if log_level is not None:
        try:
            set_level(log_level)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    _STATE["log_level"] = log_level


def _load_settings(config: Optional[Path], profile: Optional[str]) -> AppSettings:
    try:
        settings = resolve_settings(config, profile=profile)
    except ConfigError as exc:
        typer.secho(f"Configuration error: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc
    if _STATE["log_level"] is None:
        try:
            set_level(settings.log_level)
        except ValueError as exc:
            typer.secho(f"Configuration error: {exc}", err=True, fg=typer.colors.RED)
            raise typer.Exit(code=2) from exc
    return settings


def _stage_printer(stage: str, detail: Dict[str, Any]) -> None:
    if stage == "progress":
        typer.secho(
            f"    progress {detail.get('processed')}/{detail.get('total')} ok={detail.get('success')}",
            err=True,
        )
        return
    extras = " ".join(f"{key}={value}" for key, value in detail.items())
    typer.secho(f"[{stage:>17}] {extras}".rstrip(), err=True)


def _nearest_existing(path: Path) -> Path:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return Path(".")


def _print_summary(result: RunResult) -> None:
    typer.echo(f"Session: {result.session_id}")
    typer.echo(f"Status: {result.status} (state {result.state.value})")
    if result.file:
        typer.echo(f"File: {result.file}")
    typer.echo(f"Rows: {result.total_rows}")
    typer.echo(f"Submitted: {result.success}")
    typer.echo(f"Failed: {result.failed}")
    typer.echo(f"Skipped (already sent): {result.skipped}")
    typer.echo(f"Duplicates reported by API: {result.duplicates}")
    if result.unmapped_headers:
        typer.echo(f"Unmapped headers: {', '.join(result.unmapped_headers)}")
    if result.missing_headers:
        typer.echo(f"Missing headers: {', '.join(result.missing_headers)}")
    if result.validation_errors:
        typer.echo(f"Validation errors: {len(result.validation_errors)}")
    if result.report_path:
        typer.echo(f"Failure report: {result.report_path}")
    if result.moved_to:
        typer.echo(f"Moved to: {result.moved_to}")
    if result.error:
        typer.echo(f"Error: {result.error}")


@app.command("run")
def cli_run(
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only; no submissions or file moves."),
    profile: Optional[str] = PROFILE_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Process the newest spreadsheet waiting in the inbox."""

    settings = _load_settings(config, profile)
    logger = get_logger()

    try:
        pipeline = IngestionPipeline.from_settings(settings, dry_run=dry_run, progress_cb=_stage_printer)
    except StoreError as exc:
        typer.secho(f"Cannot open dedup store: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    try:
        with pipeline.store, pipeline.client:
            result = pipeline.run()
    except (LicitaFlowError, OSError) as exc:
        logger.exception("cli.run fatal error=%s", exc)
        typer.secho(f"Run failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    _print_summary(result)
    logger.info("cli.run completed status=%s session=%s", result.status, result.session_id)


@app.command("health")
def cli_health(
    profile: Optional[str] = PROFILE_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Probe the ingestion endpoint and the dedup store without creating anything."""

    settings = _load_settings(config, profile)

    with SubmissionClient(settings.api) as client:
        api_ok = client.check_health()
    typer.echo(f"API {client.ingest_url}: {'ok' if api_ok else 'unreachable'}")

    store_dir = settings.store_path.parent
    if not store_dir.is_dir():
        parent = _nearest_existing(store_dir)
        creatable = os.access(parent, os.W_OK | os.X_OK)
        typer.echo(
            f"Store {settings.store_path}: {'not created yet' if creatable else 'degraded'} records=0"
        )
        if not creatable:
            typer.echo(f"  - Cannot create store directory under {parent}")
        if not (api_ok and creatable):
            raise typer.Exit(code=1)
        return

    try:
        store = DedupStore(settings.store_path)
    except StoreError as exc:
        typer.echo(f"Store {settings.store_path}: {exc}")
        raise typer.Exit(code=1) from exc
    health = store.healthcheck()
    typer.echo(
        f"Store {settings.store_path}: {'ok' if health.is_healthy() else 'degraded'} "
        f"records={health.record_count}"
    )
    for issue in health.issues:
        typer.echo(f"  - {issue}")

    if not (api_ok and health.is_healthy()):
        raise typer.Exit(code=1)


@app.command("config")
def cli_config(
    profile: Optional[str] = PROFILE_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Print the resolved settings with the API key masked."""

    settings = _load_settings(config, profile)
    typer.echo(json.dumps(settings.redacted(), indent=2, ensure_ascii=False))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
