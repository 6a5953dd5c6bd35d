"""
Logging helpers.

Modules log through ``logging.getLogger(__name__)``; the CLI and gateway call
``configure_logging`` once at startup.
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once. Unknown level names fall back to INFO."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=_FORMAT)
    logging.getLogger("optisettle").setLevel(numeric)
