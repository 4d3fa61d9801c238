from __future__ import annotations

from .setup import configure_logging, shutdown_logging

__all__ = ["configure_logging", "shutdown_logging"]
