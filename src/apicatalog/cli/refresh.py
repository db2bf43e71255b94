"""
CLI command for running a refresh pass.

Commands:
    apicatalog refresh                       - Refresh every listed service
    apicatalog refresh --namespace payments  - Limit the pass to one namespace
    apicatalog refresh --force               - Ignore failure backoff
    apicatalog refresh --format json         - Output the result as JSON
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from rich.table import Table

from apicatalog.catalog.refresh import RefreshResult, RefreshScope
from apicatalog.cli.ux import console, header, success, warning
from apicatalog.config import Settings, get_settings
from apicatalog.core.errors import ExitCode
from apicatalog.runtime import build_runtime


async def _run_refresh(settings: Settings, scope: RefreshScope) -> RefreshResult:
    runtime = await build_runtime(settings)
    try:
        return await runtime.orchestrator.refresh(scope)
    finally:
        await runtime.aclose()
        if settings.catalog_backend == "sql":
            from apicatalog.db.session import dispose_engine

            await dispose_engine()


def refresh_command(
    namespaces: Sequence[str] | None = None,
    force: bool = False,
    output_format: str = "table",
    settings: Settings | None = None,
) -> int:
    """
    Run one refresh pass and print its counts.

    Exit codes:
        0 - Every in-scope service was processed
        1 - Some services failed
        11 - Services could not be listed
    """
    cfg = settings or get_settings()
    scope = RefreshScope.for_namespaces(namespaces or (), force=force)

    if output_format == "json":
        result = asyncio.run(_run_refresh(cfg, scope))
        console.print_json(data=result.to_dict())
    else:
        with_scope = ", ".join(scope.namespaces) or "all namespaces"
        header(f"Refreshing catalog ({with_scope})")
        result = asyncio.run(_run_refresh(cfg, scope))
        _print_result_table(result)

        if result.failed:
            warning(f"{result.failed} service(s) failed")
        else:
            success(f"Refreshed {result.total} service(s)")

    return ExitCode.WARNING if result.failed else ExitCode.SUCCESS


def _print_result_table(result: RefreshResult) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Created", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Total", justify="right")
    table.add_row(
        str(result.created),
        str(result.updated),
        str(result.skipped),
        f"[error]{result.failed}[/error]" if result.failed else "0",
        str(result.total),
    )
    console.print(table)


def register_refresh_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register refresh subcommand parser."""
    parser = subparsers.add_parser("refresh", help="Run one catalog refresh pass")
    parser.add_argument(
        "--namespace",
        "-n",
        dest="namespaces",
        action="append",
        default=[],
        help="Namespace to refresh (repeatable, default: all namespaces)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Contact services even when they are in failure backoff",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )


def handle_refresh_command(args: argparse.Namespace) -> int:
    """Handle refresh command from CLI args."""
    return refresh_command(
        namespaces=getattr(args, "namespaces", None),
        force=getattr(args, "force", False),
        output_format=getattr(args, "output_format", "table"),
    )
