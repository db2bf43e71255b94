"""Tests for the apicatalog command line."""

import asyncio
import json

import httpx
import pytest
from factories import candidate, openapi_document

from apicatalog.catalog.lister import ServiceListingError, StaticServiceLister
from apicatalog.catalog.store import InMemoryCatalogStore
from apicatalog.cli import refresh as refresh_cli
from apicatalog.cli.main import HANDLERS, build_parser, main, run
from apicatalog.cli.refresh import refresh_command
from apicatalog.cli.services import services_command
from apicatalog.cli.ux import console
from apicatalog.config import Settings
from apicatalog.core.errors import ExitCode
from apicatalog.domain.models import ClusterAddress, ServiceIdentity, ServiceRecord, Specification
from apicatalog.runtime import build_runtime


def _cluster(request: httpx.Request) -> httpx.Response:
    if request.url.host == "10.0.0.1":
        return httpx.Response(200, text=openapi_document())
    return httpx.Response(404)


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch):
    """Keep the test logging setup and render tables without wrapping."""
    monkeypatch.setattr("apicatalog.cli.main.configure_logging", lambda level: None)
    monkeypatch.setattr(console, "width", 200)


@pytest.fixture
def memory_settings():
    return Settings(catalog_backend="memory", fetch_retry_attempts=0)


@pytest.fixture
def cluster(monkeypatch):
    """Point the refresh command at a static lister and a fake cluster."""
    lister = StaticServiceLister([candidate("ping")])

    async def fake_build_runtime(settings):
        client = httpx.AsyncClient(transport=httpx.MockTransport(_cluster))
        return await build_runtime(settings, lister=lister, http_client=client)

    monkeypatch.setattr(refresh_cli, "build_runtime", fake_build_runtime)
    return lister


class TestParser:
    def test_refresh_arguments(self):
        args = build_parser().parse_args(["refresh", "-n", "a", "--namespace", "b", "--force"])

        assert args.command == "refresh"
        assert args.namespaces == ["a", "b"]
        assert args.force is True
        assert args.output_format == "table"

    def test_services_arguments(self):
        args = build_parser().parse_args(["services", "--status", "active", "--format", "json"])

        assert args.status == "active"
        assert args.output_format == "json"

    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve"])

        assert (args.host, args.port) == ("0.0.0.0", 8000)


def test_no_command_prints_help(capsys):
    assert run([]) == 1
    assert "usage" in capsys.readouterr().out


def test_main_exits_with_command_code(monkeypatch):
    monkeypatch.setitem(HANDLERS, "refresh", lambda args: ExitCode.WARNING)

    with pytest.raises(SystemExit) as exc_info:
        main(["refresh"])

    assert exc_info.value.code == ExitCode.WARNING


class TestRefreshCommand:
    def test_table_output(self, cluster, memory_settings, capsys):
        code = refresh_command(settings=memory_settings)

        out = capsys.readouterr().out
        assert code == ExitCode.SUCCESS
        assert "Refreshed 1 service(s)" in out

    def test_json_output(self, cluster, memory_settings, capsys):
        cluster.replace([candidate("ping"), candidate("quiet", address="10.0.0.9")])

        code = refresh_command(output_format="json", settings=memory_settings)

        result = json.loads(capsys.readouterr().out)
        assert code == ExitCode.SUCCESS
        assert result == {"created": 2, "updated": 0, "failed": 0, "skipped": 0, "total": 2}

    def test_failures_return_warning(self, cluster, memory_settings, capsys):
        cluster.replace([candidate("ping"), candidate("broken", port=0)])

        code = refresh_command(settings=memory_settings)

        assert code == ExitCode.WARNING
        assert "1 service(s) failed" in capsys.readouterr().out

    def test_namespace_scope(self, cluster, memory_settings, capsys):
        cluster.replace([candidate("ping"), candidate("ledger", namespace="payments")])

        refresh_command(namespaces=["payments"], output_format="json", settings=memory_settings)

        assert json.loads(capsys.readouterr().out)["total"] == 1

    def test_listing_error_maps_to_provider_exit_code(self, monkeypatch):
        monkeypatch.setenv("APICATALOG_CATALOG_BACKEND", "memory")

        class BrokenLister:
            async def list_services(self):
                raise ServiceListingError("cluster API unreachable")

        async def fake_build_runtime(settings):
            return await build_runtime(settings, lister=BrokenLister())

        monkeypatch.setattr(refresh_cli, "build_runtime", fake_build_runtime)

        assert run(["refresh"]) == ExitCode.PROVIDER_ERROR


class TestServicesCommand:
    @pytest.fixture
    def store(self):
        store = InMemoryCatalogStore()
        record = ServiceRecord.discover(
            ServiceIdentity("default", "users"), ClusterAddress("10.0.0.5", 8080)
        )
        record.attach_specification(Specification(raw_document="{}", title="Users", version="2"))
        quiet = ServiceRecord.discover(
            ServiceIdentity("default", "quiet"), ClusterAddress("10.0.0.6", 8080)
        )
        quiet.mark_no_spec()
        asyncio.run(store.save(record))
        asyncio.run(store.save(quiet))
        return store

    def test_json_output(self, store, memory_settings, capsys):
        code = services_command(output_format="json", settings=memory_settings, store=store)

        services = json.loads(capsys.readouterr().out)
        assert code == ExitCode.SUCCESS
        assert [s["id"] for s in services] == ["default/quiet", "default/users"]
        assert services[1]["title"] == "Users"
        assert services[1]["address"] == "http://10.0.0.5:8080"

    def test_status_filter_is_case_insensitive(self, store, memory_settings, capsys):
        services_command(status="no_spec", output_format="json", settings=memory_settings, store=store)

        services = json.loads(capsys.readouterr().out)
        assert [s["id"] for s in services] == ["default/quiet"]

    def test_table_output(self, store, memory_settings, capsys):
        services_command(settings=memory_settings, store=store)

        out = capsys.readouterr().out
        assert "default/users" in out
        assert "Users 2" in out

    def test_unknown_status_is_validation_error(self, monkeypatch):
        monkeypatch.setenv("APICATALOG_CATALOG_BACKEND", "memory")

        assert run(["services", "--status", "bogus"]) == ExitCode.VALIDATION_ERROR

    def test_empty_sql_catalog(self, tmp_path, capsys):
        settings = Settings(
            catalog_backend="sql", database_url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"
        )

        code = services_command(settings=settings)

        assert code == ExitCode.SUCCESS
        assert "No services in the catalog" in capsys.readouterr().out
        assert (tmp_path / "catalog.db").exists()
