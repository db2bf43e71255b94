"""Tests for catalog domain models."""

import pytest

from apicatalog.domain.models import (
    ClusterAddress,
    DescriptionPath,
    Operation,
    OperationParameter,
    ParameterLocation,
    ServiceIdentity,
    ServiceRecord,
    ServiceStatus,
    Specification,
)


def _spec(*operations: Operation) -> Specification:
    return Specification(raw_document="{}", title="Users", version="2.0", operations=operations)


def _record() -> ServiceRecord:
    return ServiceRecord.discover(
        ServiceIdentity("default", "users"),
        ClusterAddress("10.0.0.5", 8080),
        DescriptionPath.default(),
    )


class TestServiceIdentity:
    def test_round_trip(self):
        identity = ServiceIdentity("payments", "ledger")

        assert identity.as_string() == "payments/ledger"
        assert str(identity) == "payments/ledger"
        assert ServiceIdentity.parse(identity.as_string()) == identity

    @pytest.mark.parametrize("value", ["ledger", "a/b/c", "/ledger", "payments/", ""])
    def test_parse_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            ServiceIdentity.parse(value)

    def test_blank_parts_rejected(self):
        with pytest.raises(ValueError):
            ServiceIdentity("  ", "ledger")

    def test_hashable_by_value(self):
        assert {ServiceIdentity("a", "b"), ServiceIdentity("a", "b")} == {ServiceIdentity("a", "b")}


class TestClusterAddress:
    @pytest.mark.parametrize("port", [1, 80, 65535])
    def test_valid_ports(self, port):
        assert ClusterAddress("10.0.0.1", port).port == port

    @pytest.mark.parametrize("port", [0, -1, 65536, True])
    def test_invalid_ports(self, port):
        with pytest.raises(ValueError):
            ClusterAddress("10.0.0.1", port)

    def test_to_url_normalizes_path(self):
        address = ClusterAddress("10.0.0.1", 8080)

        assert address.to_url("/v3/api-docs") == "http://10.0.0.1:8080/v3/api-docs"
        assert address.to_url("v3/api-docs") == "http://10.0.0.1:8080/v3/api-docs"
        assert address.to_url(None) == "http://10.0.0.1:8080/"
        assert address.base_url() == "http://10.0.0.1:8080"


class TestDescriptionPath:
    def test_default_is_canonical_instance(self):
        assert DescriptionPath.of("/v3/api-docs") is DescriptionPath.default()
        assert DescriptionPath.of("v3/api-docs") is DescriptionPath.default()
        assert DescriptionPath.of(None) is DescriptionPath.default()
        assert DescriptionPath.default().is_default()

    def test_custom_path_normalized(self):
        path = DescriptionPath.of("openapi.json")

        assert path.value == "/openapi.json"
        assert not path.is_default()
        assert path == DescriptionPath("/openapi.json")

    def test_blank_rejected(self):
        with pytest.raises(ValueError):
            DescriptionPath("   ")


class TestOperation:
    def test_method_uppercased(self):
        assert Operation("listUsers", "get", "/users").method == "GET"

    def test_equality_by_operation_id_only(self):
        first = Operation("listUsers", "GET", "/users", summary="List")
        second = Operation("listUsers", "POST", "/people")

        assert first == second
        assert hash(first) == hash(second)

    def test_blank_operation_id_rejected(self):
        with pytest.raises(ValueError):
            Operation(" ", "GET", "/users")

    def test_parameter_helpers(self):
        op = Operation(
            "getUser",
            "GET",
            "/users/{id}",
            parameters=[
                OperationParameter("id", ParameterLocation.PATH, required=True),
                OperationParameter("expand", ParameterLocation.QUERY),
                OperationParameter("X-Trace", ParameterLocation.HEADER),
            ],
        )

        assert [p.name for p in op.path_parameters()] == ["id"]
        assert [p.name for p in op.query_parameters()] == ["expand"]
        assert isinstance(op.parameters, tuple)
        assert not op.has_request_body()

    def test_parameter_location_parse(self):
        assert ParameterLocation.parse("QUERY") is ParameterLocation.QUERY
        assert ParameterLocation.parse("body") is None
        assert ParameterLocation.parse(None) is None


class TestSpecification:
    def test_lookup_and_tags(self):
        spec = _spec(
            Operation("listUsers", "GET", "/users", tag="users"),
            Operation("listOrders", "GET", "/orders", tag="orders"),
            Operation("health", "GET", "/health"),
        )

        assert spec.operation_count == 3
        assert spec.find_operation("listOrders").path == "/orders"
        assert spec.find_operation("missing") is None
        assert [op.operation_id for op in spec.operations_by_tag("users")] == ["listUsers"]
        assert len(spec.operations_by_tag("  ")) == 3
        assert spec.tags() == ["orders", "users"]


class TestServiceRecord:
    def test_discover_starts_active_without_spec(self):
        record = _record()

        assert record.status is ServiceStatus.ACTIVE
        assert record.specification is None
        assert record.last_checked_at is None
        assert record.is_active()

    def test_attach_specification(self):
        record = _record()
        spec = _spec(Operation("listUsers", "GET", "/users"))

        record.attach_specification(spec)

        assert record.status is ServiceStatus.ACTIVE
        assert record.specification is spec
        assert record.last_checked_at is not None
        assert record.find_operation("listUsers") is not None

    def test_mark_unreachable_keeps_specification(self):
        record = _record()
        spec = _spec(Operation("listUsers", "GET", "/users"))
        record.attach_specification(spec)

        record.mark_unreachable()

        assert record.status is ServiceStatus.UNREACHABLE
        assert record.specification is spec
        assert not record.is_active()

    def test_mark_no_spec_clears_specification(self):
        record = _record()
        record.attach_specification(_spec(Operation("listUsers", "GET", "/users")))
        first_check = record.last_checked_at

        record.mark_no_spec()

        assert record.status is ServiceStatus.NO_SPEC
        assert record.specification is None
        assert not record.has_specification()
        assert record.last_checked_at >= first_check
        assert record.all_operations() == []

    def test_any_transition_allowed_from_any_state(self):
        record = _record()
        record.mark_no_spec()
        record.mark_unreachable()
        record.attach_specification(_spec())

        assert record.status is ServiceStatus.ACTIVE

    def test_urls(self):
        record = _record()
        op = Operation("getUser", "GET", "/users/{id}")

        assert record.specification_url() == "http://10.0.0.5:8080/v3/api-docs"
        assert record.endpoint_url(op) == "http://10.0.0.5:8080/users/{id}"

    def test_equality_by_identity(self):
        first = _record()
        second = ServiceRecord.discover(ServiceIdentity("default", "users"), ClusterAddress("10.9.9.9", 80))
        second.mark_no_spec()

        assert first == second

    def test_status_descriptions(self):
        assert "contacted" in ServiceStatus.UNREACHABLE.description
        assert all(status.description for status in ServiceStatus)
