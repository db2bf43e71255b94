"""
CLI commands for apicatalog.
"""

from apicatalog.cli.refresh import refresh_command
from apicatalog.cli.serve import serve_command
from apicatalog.cli.services import services_command

__all__ = [
    "refresh_command",
    "serve_command",
    "services_command",
]
