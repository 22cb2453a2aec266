"""Configuration package — re-exports for convenience."""

from iclock_server.config.loader import ConfigLoader
from iclock_server.config.settings import Settings

__all__ = ["ConfigLoader", "Settings"]
