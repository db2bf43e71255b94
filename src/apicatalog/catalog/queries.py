"""
Read-side catalog queries and operation matching.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass

from apicatalog.catalog.store import CatalogStore
from apicatalog.core.errors import NotFoundError
from apicatalog.domain.models import (
    Operation,
    ServiceIdentity,
    ServiceRecord,
    ServiceStatus,
)


@dataclass(frozen=True, slots=True)
class ServiceCounts:
    active: int
    unreachable: int
    no_spec: int

    @property
    def total(self) -> int:
        return self.active + self.unreachable + self.no_spec

    def to_dict(self) -> dict[str, int]:
        return {
            "active": self.active,
            "unreachable": self.unreachable,
            "no_spec": self.no_spec,
            "total": self.total,
        }


@dataclass(frozen=True, slots=True)
class OperationDetails:
    service: ServiceIdentity
    operation: Operation
    endpoint_url: str


@dataclass(frozen=True, slots=True)
class OperationMatch:
    service: ServiceIdentity
    operation: Operation


class OperationMatcher:
    """Filters operations of one record or across many."""

    def find_by_id(self, record: ServiceRecord, operation_id: str) -> Operation | None:
        return record.find_operation(operation_id)

    def find_by_path_pattern(self, record: ServiceRecord, pattern: str) -> list[Operation]:
        """Match operation paths against a glob where ``*`` spans any characters."""
        return [op for op in record.all_operations() if fnmatch.fnmatchcase(op.path, pattern)]

    def find_by_method(self, record: ServiceRecord, method: str) -> list[Operation]:
        return [op for op in record.all_operations() if op.method == method.upper()]

    def find_by_tag(self, record: ServiceRecord, tag: str) -> list[Operation]:
        return [op for op in record.all_operations() if op.tag is not None and op.tag.lower() == tag.lower()]

    def search(self, record: ServiceRecord, keyword: str) -> list[Operation]:
        needle = keyword.lower()
        return [op for op in record.all_operations() if _matches_keyword(op, needle)]

    def search_across(self, records: list[ServiceRecord], keyword: str) -> list[OperationMatch]:
        matches: list[OperationMatch] = []
        for record in records:
            for op in self.search(record, keyword):
                matches.append(OperationMatch(record.identity, op))
        return matches


def _matches_keyword(operation: Operation, needle: str) -> bool:
    fields = (operation.operation_id, operation.summary, operation.description, operation.path)
    return any(value is not None and needle in value.lower() for value in fields)


class CatalogQueryService:
    def __init__(self, store: CatalogStore, matcher: OperationMatcher | None = None) -> None:
        self._store = store
        self._matcher = matcher or OperationMatcher()

    @property
    def matcher(self) -> OperationMatcher:
        return self._matcher

    async def list_services(
        self,
        namespace: str | None = None,
        status: ServiceStatus | None = None,
        active_only: bool = False,
    ) -> list[ServiceRecord]:
        if namespace:
            records = await self._store.find_by_namespace(namespace)
        else:
            records = await self._store.list_all()

        if active_only:
            status = ServiceStatus.ACTIVE
        if status is not None:
            records = [r for r in records if r.status is status]
        return records

    async def find_service(self, service_id: str) -> ServiceRecord | None:
        try:
            identity = ServiceIdentity.parse(service_id)
        except ValueError:
            return None
        return await self._store.find_by_id(identity)

    async def get_service(self, identity: ServiceIdentity) -> ServiceRecord:
        record = await self._store.find_by_id(identity)
        if record is None:
            raise NotFoundError(f"Service not found: {identity}", {"service": str(identity)})
        return record

    async def get_operations(
        self,
        identity: ServiceIdentity,
        tag: str | None = None,
        method: str | None = None,
    ) -> list[Operation]:
        record = await self.get_service(identity)
        operations = record.operations(tag)
        if method:
            operations = [op for op in operations if op.method == method.upper()]
        return operations

    async def get_operation_details(
        self, identity: ServiceIdentity, operation_id: str
    ) -> OperationDetails:
        record = await self.get_service(identity)
        operation = record.find_operation(operation_id)
        if operation is None:
            raise NotFoundError(
                f"Operation not found: {operation_id}",
                {"service": str(identity), "operation_id": operation_id},
            )
        return OperationDetails(identity, operation, record.endpoint_url(operation))

    async def search_operations(self, keyword: str) -> list[OperationMatch]:
        records = await self._store.find_by_status(ServiceStatus.ACTIVE)
        return self._matcher.search_across(records, keyword)

    async def service_counts(self) -> ServiceCounts:
        records = await self._store.list_all()
        counts = {status: 0 for status in ServiceStatus}
        for record in records:
            counts[record.status] += 1
        return ServiceCounts(
            active=counts[ServiceStatus.ACTIVE],
            unreachable=counts[ServiceStatus.UNREACHABLE],
            no_spec=counts[ServiceStatus.NO_SPEC],
        )
