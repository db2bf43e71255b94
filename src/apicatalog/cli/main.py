from __future__ import annotations

import argparse
import sys
from typing import Sequence

from apicatalog.cli.refresh import handle_refresh_command, register_refresh_parser
from apicatalog.cli.serve import handle_serve_command, register_serve_parser
from apicatalog.cli.services import handle_services_command, register_services_parser
from apicatalog.config import get_settings
from apicatalog.core.errors import main_with_error_handling
from apicatalog.logging import configure_logging

HANDLERS = {
    "serve": handle_serve_command,
    "refresh": handle_refresh_command,
    "services": handle_services_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apicatalog",
        description="Catalog of cluster services and their OpenAPI operations",
    )
    subparsers = parser.add_subparsers(dest="command")

    register_serve_parser(subparsers)
    register_refresh_parser(subparsers)
    register_services_parser(subparsers)
    return parser


@main_with_error_handling()
def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    configure_logging(get_settings().log_level)
    return handler(args)


def main(argv: Sequence[str] | None = None) -> None:
    sys.exit(run(argv))


if __name__ == "__main__":  # pragma: no cover - exercised via module entrypoint
    main()
