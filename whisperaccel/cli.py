"""
whisperaccel command-line interface.

Usage::

    whisperaccel detect
    whisperaccel detect --json --force
    whisperaccel classify "Intel(R) Arc(TM) A770 Graphics"
    whisperaccel runtime
    whisperaccel select --model large-v3 --priority intel,nvidia,cpu
    whisperaccel select --model small --gpu-id wmi-gpu-0 --json
    whisperaccel load --model base --addons-dir ./build/addons
"""

from __future__ import annotations

import click

from whisperaccel import __version__
from whisperaccel.logging_utils import configure_logging


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="whisperaccel")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """whisperaccel: detect GPUs and pick a processing backend for whisper models."""
    configure_logging(verbose)


# ---------------------------------------------------------------------------
# Register command modules
# ---------------------------------------------------------------------------

from whisperaccel.commands import backend, hardware  # noqa: E402

for _mod in [hardware, backend]:
    _mod.register(main)
