"""Main Typer application — imports and registers all CLI commands.

Entry point: ``imgfmt`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from imgfmt.cli.commands.convert import convert_cmd
from imgfmt.cli.commands.inspect_cmd import inspect_cmd

app = typer.Typer(
    name="imgfmt",
    help="imgfmt: convert every raster asset in a build output to one image format.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="convert", help="Convert a build output directory in place.")(convert_cmd)
app.command(name="inspect", help="List raster assets and their opt-out status.")(inspect_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
