"""
apicatalog configuration.

Pydantic-based settings loaded from environment variables (APICATALOG_
prefix) and an optional .env file.
"""

from apicatalog.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
