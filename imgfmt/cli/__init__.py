"""imgfmt CLI — Typer-based command-line interface.

Provides the ``imgfmt`` command with ``convert`` and ``inspect``
subcommands.  All output uses Rich for formatted terminal display.
"""
