"""Tests for catalog read queries and operation matching."""

import pytest

from apicatalog.catalog.queries import CatalogQueryService, OperationMatcher
from apicatalog.catalog.store import InMemoryCatalogStore
from apicatalog.core.errors import NotFoundError
from apicatalog.domain.models import (
    ClusterAddress,
    Operation,
    ServiceIdentity,
    ServiceRecord,
    ServiceStatus,
    Specification,
)

USERS = ServiceIdentity("default", "users")
LEDGER = ServiceIdentity("payments", "ledger")
LEGACY = ServiceIdentity("default", "legacy")

USER_OPERATIONS = (
    Operation("listUsers", "GET", "/users", summary="List all users", tag="Users"),
    Operation("getUser", "GET", "/users/{id}", tag="Users"),
    Operation("createUser", "POST", "/users", description="Register a new account", tag="Users"),
    Operation("health", "GET", "/actuator/health"),
)


def _record(identity, operations=(), ip="10.0.0.5"):
    record = ServiceRecord.discover(identity, ClusterAddress(ip, 8080))
    record.attach_specification(
        Specification(raw_document="{}", title=identity.name, operations=operations)
    )
    return record


@pytest.fixture
def users():
    return _record(USERS, USER_OPERATIONS)


@pytest.fixture
async def queries(users):
    store = InMemoryCatalogStore()
    ledger = _record(LEDGER, (Operation("listEntries", "GET", "/entries", summary="List ledger entries"),))
    legacy = _record(LEGACY, (Operation("listUsersV1", "GET", "/v1/users"),))
    legacy.mark_unreachable()
    for record in (users, ledger, legacy):
        await store.save(record)
    return CatalogQueryService(store)


class TestOperationMatcher:
    def test_find_by_id(self, users):
        matcher = OperationMatcher()

        assert matcher.find_by_id(users, "getUser").path == "/users/{id}"
        assert matcher.find_by_id(users, "missing") is None

    @pytest.mark.parametrize(
        ("pattern", "expected"),
        [
            ("/users", ["listUsers", "createUser"]),
            ("/users/*", ["getUser"]),
            ("/users*", ["listUsers", "getUser", "createUser"]),
            ("*/health", ["health"]),
            ("/orders*", []),
        ],
    )
    def test_find_by_path_pattern(self, users, pattern, expected):
        ops = OperationMatcher().find_by_path_pattern(users, pattern)

        assert [op.operation_id for op in ops] == expected

    def test_find_by_method_case_insensitive(self, users):
        ops = OperationMatcher().find_by_method(users, "post")

        assert [op.operation_id for op in ops] == ["createUser"]

    def test_find_by_tag_case_insensitive(self, users):
        ops = OperationMatcher().find_by_tag(users, "users")

        assert len(ops) == 3

    @pytest.mark.parametrize(
        ("keyword", "expected"),
        [
            ("list", ["listUsers"]),
            ("ACCOUNT", ["createUser"]),
            ("actuator", ["health"]),
            ("nothing", []),
        ],
    )
    def test_search(self, users, keyword, expected):
        ops = OperationMatcher().search(users, keyword)

        assert [op.operation_id for op in ops] == expected

    def test_record_without_specification_has_no_matches(self):
        record = ServiceRecord.discover(USERS, ClusterAddress("10.0.0.5", 8080))

        assert OperationMatcher().search(record, "users") == []


class TestCatalogQueryService:
    @pytest.mark.asyncio
    async def test_list_services(self, queries):
        all_ids = [r.identity for r in await queries.list_services()]
        default_ids = [r.identity for r in await queries.list_services(namespace="default")]
        active_ids = [r.identity for r in await queries.list_services(active_only=True)]
        unreachable = await queries.list_services(status=ServiceStatus.UNREACHABLE)

        assert all_ids == [LEGACY, USERS, LEDGER]
        assert default_ids == [LEGACY, USERS]
        assert active_ids == [USERS, LEDGER]
        assert [r.identity for r in unreachable] == [LEGACY]

    @pytest.mark.asyncio
    async def test_find_service(self, queries):
        assert (await queries.find_service("default/users")).identity == USERS
        assert await queries.find_service("default/ghost") is None
        assert await queries.find_service("not-an-id") is None

    @pytest.mark.asyncio
    async def test_get_service_missing_raises(self, queries):
        with pytest.raises(NotFoundError) as exc_info:
            await queries.get_service(ServiceIdentity("default", "ghost"))

        assert exc_info.value.details == {"service": "default/ghost"}

    @pytest.mark.asyncio
    async def test_get_operations_filters(self, queries):
        by_tag = await queries.get_operations(USERS, tag="Users")
        by_method = await queries.get_operations(USERS, method="get")
        both = await queries.get_operations(USERS, tag="Users", method="POST")

        assert len(by_tag) == 3
        assert [op.operation_id for op in by_method] == ["listUsers", "getUser", "health"]
        assert [op.operation_id for op in both] == ["createUser"]

    @pytest.mark.asyncio
    async def test_get_operation_details(self, queries):
        details = await queries.get_operation_details(USERS, "getUser")

        assert details.service == USERS
        assert details.endpoint_url == "http://10.0.0.5:8080/users/{id}"

    @pytest.mark.asyncio
    async def test_get_operation_details_unknown_operation(self, queries):
        with pytest.raises(NotFoundError):
            await queries.get_operation_details(USERS, "deleteUser")

    @pytest.mark.asyncio
    async def test_search_operations_only_covers_active_services(self, queries):
        matches = await queries.search_operations("list")

        assert [(m.service, m.operation.operation_id) for m in matches] == [
            (USERS, "listUsers"),
            (LEDGER, "listEntries"),
        ]

    @pytest.mark.asyncio
    async def test_service_counts(self, queries):
        counts = await queries.service_counts()

        assert (counts.active, counts.unreachable, counts.no_spec) == (2, 1, 0)
        assert counts.to_dict()["total"] == 3
