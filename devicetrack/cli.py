"""Typer based command line entry points for DeviceTrack."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from devicetrack.core.errors import ConfigError, DeviceTrackError
from devicetrack.core.logger import get_logger
from devicetrack.core.pipeline import IngestPipeline
from devicetrack.core.settings import load_settings
from devicetrack_io import fingerprint_file
from devicetrack_persist import StoreError, XlsxIngestStorage

OUTPUT_FORMATS = {"table", "json"}
DEVICE_LISTING_COLUMNS = [
    "brand",
    "device",
    "model",
    "tac",
    "build",
    "target_region",
    "target_customer",
    "target_solution",
    "status",
]

app = typer.Typer(help="Ingest device-validation and inventory workbooks.")


def _validate_format(value: str) -> str:
    value = value.lower()
    if value not in OUTPUT_FORMATS:
        raise typer.BadParameter("format must be one of table, json")
    return value


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING). Defaults to settings.yaml.",
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    try:
        settings = load_settings()
    except ConfigError as exc:
        typer.secho(f"Invalid configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc

    level_name = (log_level or settings.log_level).upper()
    level_value = getattr(logging, level_name, None)
    if not isinstance(level_value, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")

    logger = get_logger(settings.log_dir)
    logging.getLogger().setLevel(level_value)
    logger.setLevel(level_value)


@app.command("ingest")
def ingest_command(
    path: Optional[Path] = typer.Argument(
        None,
        exists=True,
        resolve_path=True,
        help="Workbook file or folder of workbooks. Defaults to watch_dir from settings.",
    ),
    root: Optional[Path] = typer.Option(None, "--root", help="Alternate store root."),
) -> None:
    """Ingest one workbook or every workbook in a folder and print a JSON summary."""

    settings = load_settings()
    target = path or settings.watch_dir
    if target is None:
        raise typer.BadParameter("No PATH given and no watch_dir configured")
    if not target.exists():
        typer.secho(f"Path not found: {target}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    storage = XlsxIngestStorage(root or settings.root)
    pipeline = IngestPipeline(storage, extensions=settings.workbook_extensions)

    if target.is_dir():
        results = pipeline.process_folder(target)
        typer.echo(json.dumps([item.model_dump() for item in results], ensure_ascii=False, indent=2))
        if any(not item.success for item in results):
            raise typer.Exit(code=1)
        return

    try:
        result = pipeline.process_file(target)
    except DeviceTrackError as exc:
        typer.secho(f"Ingestion failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(result.model_dump(), ensure_ascii=False, indent=2))


@app.command("hash")
def hash_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True, help="File to fingerprint"),
) -> None:
    """Print the SHA-256 used by the unchanged-file check."""

    typer.echo(fingerprint_file(file))


@app.command("devices")
def devices_command(
    region: Optional[str] = typer.Option(None, "--region", help="Substring of target region"),
    customer: Optional[str] = typer.Option(None, "--customer", help="Substring of target customer"),
    solution: Optional[str] = typer.Option(None, "--solution", help="Substring of target solution"),
    brand: Optional[str] = typer.Option(None, "--brand", help="Substring of brand"),
    status: Optional[str] = typer.Option(None, "--status", help="Exact status, e.g. Testing"),
    search: Optional[str] = typer.Option(None, "--search", help="Free text over device, model and TAC"),
    limit: int = typer.Option(50, "--limit", min=1, help="Maximum rows to print"),
    output: str = typer.Option("table", "--format", callback=_validate_format, help="table or json"),
    root: Optional[Path] = typer.Option(None, "--root", help="Alternate store root."),
) -> None:
    """List stored devices matching the given filters."""

    storage = XlsxIngestStorage(root or load_settings().root)
    try:
        frame = storage.devices.query(
            {
                "region": region,
                "customer": customer,
                "solution": solution,
                "brand": brand,
                "status": status,
                "search": search,
            }
        )
    except StoreError as exc:
        typer.secho(f"Query failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    frame = frame.head(limit)
    if output == "json":
        typer.echo(json.dumps(frame.to_dict(orient="records"), ensure_ascii=False, indent=2, default=str))
        return
    if frame.empty:
        typer.echo("No devices found.")
        return
    typer.echo(frame[DEVICE_LISTING_COLUMNS].to_string(index=False))


@app.command("health")
def health_command(
    root: Optional[Path] = typer.Option(None, "--root", help="Alternate store root."),
) -> None:
    """Check every store workbook and report problems."""

    storage = XlsxIngestStorage(root or load_settings().root)
    results = storage.healthcheck()
    healthy = True
    for name, health in results.items():
        ok = health.is_healthy()
        healthy = healthy and ok
        rows = "?" if health.row_count is None else health.row_count
        typer.echo(f"[{'OK' if ok else 'FAIL'}] {name} ({rows} rows)")
        for issue in health.issues:
            typer.echo(f"    - {issue}")
    if not healthy:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
