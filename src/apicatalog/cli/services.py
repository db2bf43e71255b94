"""
CLI command for listing catalogued services.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Any

from rich.table import Table

from apicatalog.catalog.queries import CatalogQueryService
from apicatalog.catalog.store import CatalogStore
from apicatalog.cli.ux import STATUS_STYLES, console
from apicatalog.config import Settings, get_settings
from apicatalog.core.errors import ExitCode, ValidationError
from apicatalog.domain.models import ServiceRecord, ServiceStatus
from apicatalog.runtime import build_store


async def _load_services(
    settings: Settings,
    namespace: str | None,
    status: ServiceStatus | None,
    store: CatalogStore | None = None,
) -> list[ServiceRecord]:
    owns_store = store is None
    store = store or await build_store(settings)
    try:
        return await CatalogQueryService(store).list_services(namespace, status)
    finally:
        if owns_store and settings.catalog_backend == "sql":
            from apicatalog.db.session import dispose_engine

            await dispose_engine()


def _parse_status(value: str | None) -> ServiceStatus | None:
    if value is None:
        return None
    try:
        return ServiceStatus(value.upper())
    except ValueError as exc:
        choices = ", ".join(s.value for s in ServiceStatus)
        raise ValidationError(f"Unknown status '{value}' (expected one of: {choices})") from exc


def services_command(
    namespace: str | None = None,
    status: str | None = None,
    output_format: str = "table",
    settings: Settings | None = None,
    store: CatalogStore | None = None,
) -> int:
    """List catalogued services with their status and operation counts."""
    cfg = settings or get_settings()
    records = asyncio.run(_load_services(cfg, namespace, _parse_status(status), store))

    if output_format == "json":
        console.print_json(data=[_record_to_dict(r) for r in records])
        return ExitCode.SUCCESS

    if not records:
        console.print("[muted]No services in the catalog[/muted]")
        return ExitCode.SUCCESS

    table = Table(show_header=True, header_style="bold")
    table.add_column("Service")
    table.add_column("Status")
    table.add_column("Address")
    table.add_column("API")
    table.add_column("Operations", justify="right")
    table.add_column("Last checked")

    for record in records:
        spec = record.specification
        style = STATUS_STYLES.get(record.status.value, "")
        table.add_row(
            str(record.identity),
            f"[{style}]{record.status.value}[/{style}]" if style else record.status.value,
            f"{record.address.ip}:{record.address.port}",
            f"{spec.title} {spec.version or ''}".strip() if spec and spec.title else "-",
            str(spec.operation_count if spec else 0),
            record.last_checked_at.isoformat(timespec="seconds") if record.last_checked_at else "never",
        )

    console.print(table)
    return ExitCode.SUCCESS


def _record_to_dict(record: ServiceRecord) -> dict[str, Any]:
    spec = record.specification
    return {
        "id": record.identity.as_string(),
        "status": record.status.value,
        "address": record.address.base_url(),
        "description_path": record.description_path.value,
        "title": spec.title if spec else None,
        "version": spec.version if spec else None,
        "operations": spec.operation_count if spec else 0,
        "last_checked_at": record.last_checked_at.isoformat() if record.last_checked_at else None,
    }


def register_services_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register services subcommand parser."""
    parser = subparsers.add_parser("services", help="List catalogued services")
    parser.add_argument("--namespace", "-n", help="Only services in this namespace")
    parser.add_argument(
        "--status",
        help="Only services with this status (ACTIVE, UNREACHABLE, NO_SPEC)",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )


def handle_services_command(args: argparse.Namespace) -> int:
    """Handle services command from CLI args."""
    return services_command(
        namespace=getattr(args, "namespace", None),
        status=getattr(args, "status", None),
        output_format=getattr(args, "output_format", "table"),
    )
