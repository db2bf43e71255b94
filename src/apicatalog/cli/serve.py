from __future__ import annotations

import argparse

import uvicorn

from apicatalog.api.main import create_app
from apicatalog.config import get_settings
from apicatalog.core.errors import ExitCode


def serve_command(host: str = "0.0.0.0", port: int = 8000) -> int:
    """Serve the HTTP API; the scheduled refresh runs inside the app lifespan."""
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )
    return ExitCode.SUCCESS


def register_serve_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register serve subcommand parser."""
    parser = subparsers.add_parser("serve", help="Run the catalog HTTP API and refresh scheduler")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")


def handle_serve_command(args: argparse.Namespace) -> int:
    """Handle serve command from CLI args."""
    return serve_command(host=args.host, port=args.port)
