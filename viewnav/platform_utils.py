"""Platform-related utility functions."""

import logging
import os
from pathlib import Path

APP_NAME = "viewnav"

logger = logging.getLogger(__name__)


def _normalize_path(path: str) -> str:
    """Expand user references and return an absolute path."""
    return os.path.abspath(os.path.expanduser(path))


def _home_dir() -> str:
    expanded = os.path.expanduser("~")
    if expanded and expanded != "~":
        return expanded
    try:
        return str(Path.home())
    except RuntimeError:
        logger.debug("Unable to determine home directory; using working directory")
        return os.getcwd()


def get_config_dir() -> str:
    """Return the per-user configuration directory for viewnav.

    ``VIEWNAV_CONFIG_DIR`` overrides the location. Otherwise the XDG config
    home is used, falling back to ``~/.config``.
    """
    override = os.environ.get("VIEWNAV_CONFIG_DIR")
    if override:
        return _normalize_path(override)

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config and xdg_config.strip():
        base = xdg_config
    else:
        base = os.path.join(_home_dir(), ".config")
    return os.path.join(_normalize_path(base), APP_NAME)
