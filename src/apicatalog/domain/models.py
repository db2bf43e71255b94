from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import NamedTuple

MIN_PORT = 1
MAX_PORT = 65535
DEFAULT_DESCRIPTION_PATH = "/v3/api-docs"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_path(path: str | None) -> str:
    if not path:
        return "/"
    return path if path.startswith("/") else f"/{path}"


@dataclass(frozen=True, slots=True)
class ServiceIdentity:
    """Catalog key of a service: ``namespace/name``."""

    namespace: str
    name: str

    def __post_init__(self) -> None:
        if not self.namespace or not self.namespace.strip():
            raise ValueError("namespace cannot be blank")
        if not self.name or not self.name.strip():
            raise ValueError("name cannot be blank")

    @classmethod
    def parse(cls, value: str) -> ServiceIdentity:
        parts = value.split("/")
        if len(parts) != 2:
            raise ValueError(f"Invalid service id, expected 'namespace/name', got: {value!r}")
        return cls(parts[0], parts[1])

    def as_string(self) -> str:
        return f"{self.namespace}/{self.name}"

    def __str__(self) -> str:
        return self.as_string()


@dataclass(frozen=True, slots=True)
class ClusterAddress:
    """In-cluster IP and port of a service."""

    ip: str
    port: int

    def __post_init__(self) -> None:
        if not self.ip or not self.ip.strip():
            raise ValueError("ip cannot be blank")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ValueError(f"port must be an integer, got: {self.port!r}")
        if not MIN_PORT <= self.port <= MAX_PORT:
            raise ValueError(f"port must be between {MIN_PORT} and {MAX_PORT}, got: {self.port}")

    def base_url(self) -> str:
        return f"http://{self.ip}:{self.port}"

    def to_url(self, path: str | None = None) -> str:
        return f"{self.base_url()}{_normalize_path(path)}"


class DescriptionPath:
    """Path where a service publishes its OpenAPI document.

    The default path is a single shared instance, so ``path is
    DescriptionPath.default()`` holds for every default-valued path.
    """

    __slots__ = ("_value",)

    _default: DescriptionPath | None = None

    def __init__(self, value: str) -> None:
        if value is None or not value.strip():
            raise ValueError("description path cannot be blank")
        self._value = _normalize_path(value.strip())

    @classmethod
    def default(cls) -> DescriptionPath:
        if cls._default is None:
            cls._default = cls(DEFAULT_DESCRIPTION_PATH)
        return cls._default

    @classmethod
    def of(cls, value: str | None) -> DescriptionPath:
        if value is None or _normalize_path(value.strip()) == DEFAULT_DESCRIPTION_PATH:
            return cls.default()
        return cls(value)

    @property
    def value(self) -> str:
        return self._value

    def is_default(self) -> bool:
        return self._value == DEFAULT_DESCRIPTION_PATH

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DescriptionPath):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"DescriptionPath({self._value!r})"

    def __str__(self) -> str:
        return self._value


class ParameterLocation(StrEnum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"

    @classmethod
    def parse(cls, value: str | None) -> ParameterLocation | None:
        if not value:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class OperationParameter:
    name: str
    location: ParameterLocation
    required: bool = False
    description: str | None = field(default=None, compare=False)
    schema: str | None = field(default=None, compare=False)

    @property
    def is_path_param(self) -> bool:
        return self.location is ParameterLocation.PATH

    @property
    def is_query_param(self) -> bool:
        return self.location is ParameterLocation.QUERY


@dataclass(frozen=True, slots=True)
class Operation:
    """One HTTP endpoint of a specification.

    Identity is the operation id alone; every other field is excluded from
    equality and hashing.
    """

    operation_id: str
    method: str = field(compare=False)
    path: str = field(compare=False)
    summary: str | None = field(default=None, compare=False)
    description: str | None = field(default=None, compare=False)
    tag: str | None = field(default=None, compare=False)
    parameters: tuple[OperationParameter, ...] = field(default=(), compare=False)
    request_body_schema: str | None = field(default=None, compare=False)
    response_schema: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.operation_id or not self.operation_id.strip():
            raise ValueError("operation_id cannot be blank")
        if not self.method:
            raise ValueError("method cannot be blank")
        if self.path is None:
            raise ValueError("path cannot be None")
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "parameters", tuple(self.parameters))

    def path_parameters(self) -> list[OperationParameter]:
        return [p for p in self.parameters if p.is_path_param]

    def query_parameters(self) -> list[OperationParameter]:
        return [p for p in self.parameters if p.is_query_param]

    def has_request_body(self) -> bool:
        return bool(self.request_body_schema and self.request_body_schema.strip())


@dataclass(frozen=True, slots=True)
class Specification:
    """Parsed snapshot of one OpenAPI document."""

    raw_document: str
    title: str | None = None
    version: str | None = None
    operations: tuple[Operation, ...] = field(default=(), compare=False)
    fetched_at: datetime = field(default_factory=utcnow, compare=False)

    def __post_init__(self) -> None:
        if self.raw_document is None:
            raise ValueError("raw_document cannot be None")
        object.__setattr__(self, "operations", tuple(self.operations))

    @property
    def operation_count(self) -> int:
        return len(self.operations)

    def find_operation(self, operation_id: str | None) -> Operation | None:
        if operation_id is None:
            return None
        for operation in self.operations:
            if operation.operation_id == operation_id:
                return operation
        return None

    def operations_by_tag(self, tag: str | None) -> list[Operation]:
        if tag is None or not tag.strip():
            return list(self.operations)
        return [op for op in self.operations if op.tag == tag]

    def tags(self) -> list[str]:
        return sorted({op.tag for op in self.operations if op.tag is not None})


class ServiceStatus(StrEnum):
    ACTIVE = "ACTIVE"
    UNREACHABLE = "UNREACHABLE"
    NO_SPEC = "NO_SPEC"

    @property
    def description(self) -> str:
        return _STATUS_DESCRIPTIONS[self]


_STATUS_DESCRIPTIONS = {
    ServiceStatus.ACTIVE: "Service is active with a valid OpenAPI specification",
    ServiceStatus.UNREACHABLE: "Service could not be contacted",
    ServiceStatus.NO_SPEC: "Service does not expose an OpenAPI specification",
}


class _RecordState(NamedTuple):
    status: ServiceStatus
    last_checked_at: datetime | None
    specification: Specification | None


class ServiceRecord:
    """
    Catalog entry for one discovered service.

    Status, last-checked timestamp and the attached specification change
    together through the transition methods; they are held in a single
    immutable state tuple that is swapped in one assignment, so readers
    never see a status that disagrees with the specification.
    """

    __slots__ = ("_identity", "_address", "_description_path", "_discovered_at", "_state")

    def __init__(
        self,
        identity: ServiceIdentity,
        address: ClusterAddress,
        description_path: DescriptionPath | None = None,
        *,
        discovered_at: datetime | None = None,
        status: ServiceStatus = ServiceStatus.ACTIVE,
        last_checked_at: datetime | None = None,
        specification: Specification | None = None,
    ) -> None:
        if identity is None:
            raise ValueError("identity cannot be None")
        if address is None:
            raise ValueError("address cannot be None")
        self._identity = identity
        self._address = address
        self._description_path = description_path or DescriptionPath.default()
        self._discovered_at = discovered_at or utcnow()
        self._state = _RecordState(status, last_checked_at, specification)

    @classmethod
    def discover(
        cls,
        identity: ServiceIdentity,
        address: ClusterAddress,
        description_path: DescriptionPath | None = None,
    ) -> ServiceRecord:
        """Create a freshly discovered record: ACTIVE, no specification."""
        return cls(identity, address, description_path)

    @classmethod
    def reconstitute(
        cls,
        identity: ServiceIdentity,
        address: ClusterAddress,
        description_path: DescriptionPath | None,
        discovered_at: datetime,
        status: ServiceStatus,
        last_checked_at: datetime | None,
        specification: Specification | None,
    ) -> ServiceRecord:
        """Rebuild a record loaded from a catalog store."""
        return cls(
            identity,
            address,
            description_path,
            discovered_at=discovered_at,
            status=status,
            last_checked_at=last_checked_at,
            specification=specification,
        )

    # Transitions

    def attach_specification(self, specification: Specification) -> None:
        if specification is None:
            raise ValueError("specification cannot be None")
        self._state = _RecordState(ServiceStatus.ACTIVE, utcnow(), specification)

    def mark_unreachable(self) -> None:
        # Keeps the previous specification; staleness shows through status.
        self._state = _RecordState(
            ServiceStatus.UNREACHABLE, utcnow(), self._state.specification
        )

    def mark_no_spec(self) -> None:
        self._state = _RecordState(ServiceStatus.NO_SPEC, utcnow(), None)

    # Accessors

    @property
    def identity(self) -> ServiceIdentity:
        return self._identity

    @property
    def address(self) -> ClusterAddress:
        return self._address

    @property
    def description_path(self) -> DescriptionPath:
        return self._description_path

    @property
    def discovered_at(self) -> datetime:
        return self._discovered_at

    @property
    def status(self) -> ServiceStatus:
        return self._state.status

    @property
    def last_checked_at(self) -> datetime | None:
        return self._state.last_checked_at

    @property
    def specification(self) -> Specification | None:
        return self._state.specification

    def has_specification(self) -> bool:
        return self._state.specification is not None

    def is_active(self) -> bool:
        return self._state.status is ServiceStatus.ACTIVE

    def find_operation(self, operation_id: str) -> Operation | None:
        spec = self._state.specification
        if spec is None:
            return None
        return spec.find_operation(operation_id)

    def operations(self, tag: str | None = None) -> list[Operation]:
        spec = self._state.specification
        if spec is None:
            return []
        return spec.operations_by_tag(tag)

    def all_operations(self) -> list[Operation]:
        return self.operations(None)

    def specification_url(self) -> str:
        return self._address.to_url(self._description_path.value)

    def endpoint_url(self, operation: Operation) -> str:
        return self._address.to_url(operation.path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServiceRecord):
            return NotImplemented
        return self._identity == other._identity

    def __hash__(self) -> int:
        return hash(self._identity)

    def __repr__(self) -> str:
        return (
            f"ServiceRecord(identity={self._identity}, status={self.status.value}, "
            f"has_spec={self.has_specification()})"
        )
