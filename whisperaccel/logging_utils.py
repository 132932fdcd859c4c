"""Logging helpers shared by selection, addon loading and the CLI."""

from __future__ import annotations

import logging
import uuid

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def new_correlation_id() -> str:
    """Short id used to tie together the log lines of one selection or load."""
    return uuid.uuid4().hex[:8]


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=_FORMAT,
    )
