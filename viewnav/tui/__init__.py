"""
Terminal UI package for viewnav.

This module exposes the public entry point for running the Textual navigation
panel. The actual implementation lives in ``viewnav.tui.app``. We import it
lazily so that running ``python -m viewnav.tui.app`` does not emit the
``RuntimeWarning`` that occurs when the module is imported twice before being
executed.
"""

from __future__ import annotations

from typing import Any

__all__ = ["main"]


def main(*args: Any, **kwargs: Any) -> Any:
    """Entry point used by ``viewnav-tui`` console script."""
    from .app import main as _app_main

    return _app_main(*args, **kwargs)
