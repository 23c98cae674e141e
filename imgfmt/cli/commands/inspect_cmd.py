"""``imgfmt inspect`` — list raster assets in a build output directory.

Shows each raster candidate, its intrinsic size, and whether any text
artifact opts it out of conversion.  Read-only.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.table import Table

from imgfmt.cli.console import console
from imgfmt.core.bundle_io import DirectoryHost
from imgfmt.core.codec import EncodeScheduler, PillowCodec
from imgfmt.core.classifier import is_raster
from imgfmt.models.config import PassConfig
from imgfmt.models.pass_state import Dimensions, PassContext
from imgfmt.stages.s1_opt_out_scan import OptOutScanStage


async def _probe_all(names: list[str], payloads: list[bytes]) -> list[Dimensions | None]:
    scheduler = EncodeScheduler(PillowCodec())
    return await asyncio.gather(
        *(scheduler.probe_dimensions(data, name) for name, data in zip(names, payloads))
    )


def inspect_cmd(
    dist_dir: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Build output directory to inspect.",
    ),
) -> None:
    """List raster assets with their sizes and opt-out status."""
    bundle = DirectoryHost(dist_dir).load()
    names = [name for name in bundle if is_raster(name)]
    if not names:
        console.print("[dim]No raster assets found.[/dim]")
        return

    keep = asyncio.run(OptOutScanStage(PassConfig()).execute(PassContext(), bundle))
    dims = asyncio.run(_probe_all(names, [bundle[n].source for n in names]))

    table = Table(title=f"Raster assets in {dist_dir}")
    table.add_column("Name", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Bytes", justify="right")
    table.add_column("Opted out", justify="center")
    for name, d in zip(names, dims):
        size = f"{d.width}x{d.height}" if d else "[yellow]?[/yellow]"
        kept = "[green]Yes[/green]" if name in keep else "No"
        table.add_row(name, size, str(len(bundle[name].source)), kept)
    console.print(table)
