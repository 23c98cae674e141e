"""``imgfmt convert`` — run one pass over a build output directory.

Loads the directory as a bundle, converts every raster asset to the target
format, rewrites references, and writes the result back in place.  Nothing
is written if the pass fails or ``--dry-run`` is given.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.panel import Panel
from rich.table import Table

from imgfmt.cli.console import configure_logging, console
from imgfmt.config import Settings
from imgfmt.core.bundle_io import DirectoryHost
from imgfmt.core.orchestrator import Orchestrator
from imgfmt.models.config import HtmlSizeMode, TargetFormat
from imgfmt.models.pass_state import PassReport
from imgfmt.stages.base import StageExecutionError


def convert_cmd(
    dist_dir: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Build output directory to process in place.",
    ),
    fmt: Optional[TargetFormat] = typer.Option(
        None, "--format", "-f", help="Target raster format."
    ),
    reencode: Optional[bool] = typer.Option(
        None, "--reencode/--no-reencode", help="Re-encode images already in the target format."
    ),
    html_size_mode: Optional[HtmlSizeMode] = typer.Option(
        None, "--html-size-mode", help="How width/height are written to <img> tags."
    ),
    hash_in_name: Optional[bool] = typer.Option(
        None, "--hash/--no-hash", help="Append a content hash to final image names."
    ),
    hash_length: Optional[int] = typer.Option(
        None, "--hash-length", help="Hex digest prefix length (1-64)."
    ),
    max_concurrent: Optional[int] = typer.Option(
        None, "--max-concurrent", help="Maximum codec calls in flight."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Run the pass but do not write anything."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Convert every raster asset in DIST_DIR to a single format."""
    try:
        settings = Settings()
        config = settings.to_pass_config(
            format=fmt,
            reencode=reencode,
            html_size_mode=html_size_mode,
            hash_in_name=hash_in_name,
            hash_length=hash_length,
            max_concurrent=max_concurrent,
        )
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red]\n{exc}")
        raise typer.Exit(code=2)

    configure_logging("DEBUG" if verbose else settings.log_level)

    host = DirectoryHost(dist_dir)
    bundle = host.load()
    try:
        report = Orchestrator(config).run(bundle)
    except StageExecutionError as exc:
        console.print(f"[red]Pass failed in {exc.stage_id}:[/red] {exc.__cause__ or exc}")
        raise typer.Exit(code=1)

    if not dry_run:
        host.write(bundle)

    _print_report(report, config.format.value, dry_run)


def _print_report(report: PassReport, fmt: str, dry_run: bool) -> None:
    if report.rename_map:
        table = Table(title="Renamed assets")
        table.add_column("From", style="cyan")
        table.add_column("To", style="green")
        table.add_column("Size", justify="right")
        for old, new in report.rename_map.items():
            dims = report.dimensions.get(new)
            size = f"{dims.width}x{dims.height}" if dims else "-"
            table.add_row(old, new, size)
        console.print(table)

    summary = "\n".join([
        f"Target format: [bold]{fmt}[/bold]",
        f"Renamed: {len(report.rename_map)}",
        f"Kept (opted out): {len(report.keep_set)}",
        f"Rewritten artifacts: {len(report.rewritten)}",
        "[yellow]Dry run — nothing written.[/yellow]" if dry_run else "[green]Written.[/green]",
    ])
    console.print(Panel(summary, title="imgfmt", border_style="cyan"))
