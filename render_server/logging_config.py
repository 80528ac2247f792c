"""Logging setup for the render_server package.

Call setup_logging() once at startup; modules log through
logging.getLogger(__name__).
"""

import logging
import os
import re
import sys
from typing import Dict, Optional


ROOT_LOGGER = "render_server"
DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_CONFIGURED = False


def _parse_module_levels(spec: str) -> Dict[str, int]:
    """Parse "engine.worker=DEBUG,engine.media=WARNING" style overrides.

    Names not starting with render_server are prefixed; invalid entries are ignored.
    """
    out: Dict[str, int] = {}
    for part in re.split(r"[;,]+", spec or ""):
        name, sep, level_str = part.strip().partition("=")
        if not sep or not name.strip():
            continue
        name = name.strip()
        if not name.startswith(ROOT_LOGGER):
            name = f"{ROOT_LOGGER}.{name}"
        level = getattr(logging, level_str.strip().upper(), None)
        if isinstance(level, int):
            out[name] = level
    return out


def setup_logging(level: int | str = logging.INFO, format_string: Optional[str] = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False

    for name, lvl in _parse_module_levels(os.getenv("RENDER_LOG_MODULE_LEVELS", "")).items():
        logging.getLogger(name).setLevel(lvl)

    _CONFIGURED = True
