"""
RESPONSIBILITIES
- Run dependency and filesystem health checks for the DeviceTrack stores.
- Provide both a callable API and a small CLI for quick diagnostics.
PROCESS OVERVIEW
1. persist_healthcheck() aggregates health from device/inventory/run/audit stores.
2. CLI prints per-store status, optionally as JSON for automation.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

import typer

from devicetrack_persist.storage import XlsxIngestStorage
from devicetrack_persist.stores.base_store import PersistHealth
from devicetrack_persist.utils.log import get_logger

app = typer.Typer(help="Run persistence layer health checks.")


def persist_healthcheck(root: Path | None = None) -> Dict[str, PersistHealth]:
    """Return per-store health diagnostic results."""

    logger = get_logger("tools.persist_health", root)
    storage = XlsxIngestStorage(root)
    stores = {
        "devices": storage.devices,
        "inventory": storage.inventory,
        "processed_files": storage.files,
        "automation_logs": storage.logs,
    }
    results: Dict[str, PersistHealth] = {}
    for name, store in stores.items():
        try:
            results[name] = store.healthcheck()
        except Exception as exc:  # noqa: BLE001 - capture unexpected failures
            logger.error("Healthcheck failed for %s: %s", name, exc)
            results[name] = PersistHealth(
                dependencies={},
                writable_paths={},
                locked_paths=[],
                issues=[str(exc)],
            )
    return results


@app.command("run")
def run_command(
    root: Path | None = typer.Option(None, help="Alternate persistence root."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
) -> None:
    """Execute health checks and pretty-print the outcome."""

    results = persist_healthcheck(root)
    if as_json:
        typer.echo(json.dumps({name: health.to_dict() for name, health in results.items()}, indent=2))
        return
    for name, health in results.items():
        status = "OK" if health.is_healthy() else "FAIL"
        typer.echo(f"[{status}] {name} store")
        if not health.dependencies:
            typer.echo("  dependencies: (not evaluated)")
        else:
            for dep, ok in health.dependencies.items():
                typer.echo(f"  dependency {dep}: {'OK' if ok else 'MISSING'}")
        for path, ok in health.writable_paths.items():
            typer.echo(f"  writable {path}: {'yes' if ok else 'no'}")
        if health.row_count is not None:
            typer.echo(f"  rows: {health.row_count}")
        if health.locked_paths:
            typer.echo(f"  locked: {', '.join(health.locked_paths)}")
        if health.issues:
            typer.echo("  issues:")
            for issue in health.issues:
                typer.echo(f"    - {issue}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
