"""
charmsync configuration.

Pydantic-based settings read from CHARMSYNC_* environment variables or a
.env file.
"""

from charmsync.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
