from __future__ import annotations

import asyncio
from typing import Collection, Protocol

from apicatalog.domain.models import ServiceIdentity, ServiceRecord, ServiceStatus


class CatalogStore(Protocol):
    """Key-addressed persistence for service records, keyed by identity."""

    async def find_by_id(self, identity: ServiceIdentity) -> ServiceRecord | None: ...

    async def save(self, record: ServiceRecord) -> None: ...

    async def delete_not_in(
        self,
        identities: Collection[ServiceIdentity],
        namespaces: Collection[str] | None = None,
    ) -> int: ...

    async def list_all(self) -> list[ServiceRecord]: ...

    async def find_by_status(self, status: ServiceStatus) -> list[ServiceRecord]: ...

    async def find_by_namespace(self, namespace: str) -> list[ServiceRecord]: ...

    async def delete_by_id(self, identity: ServiceIdentity) -> None: ...

    async def exists(self, identity: ServiceIdentity) -> bool: ...

    async def ping(self) -> bool: ...


def _sort_key(record: ServiceRecord) -> tuple[str, str]:
    return (record.identity.namespace, record.identity.name)


class InMemoryCatalogStore:
    """Dict-backed catalog for local development and tests."""

    def __init__(self) -> None:
        self._records: dict[ServiceIdentity, ServiceRecord] = {}
        self._lock = asyncio.Lock()

    async def find_by_id(self, identity: ServiceIdentity) -> ServiceRecord | None:
        return self._records.get(identity)

    async def save(self, record: ServiceRecord) -> None:
        async with self._lock:
            self._records[record.identity] = record

    async def delete_not_in(
        self,
        identities: Collection[ServiceIdentity],
        namespaces: Collection[str] | None = None,
    ) -> int:
        """Delete records absent from ``identities``; an empty collection deletes all.

        With ``namespaces``, only records in those namespaces are candidates
        for deletion.
        """
        keep = set(identities)
        async with self._lock:
            stale = [
                identity
                for identity in self._records
                if identity not in keep and (not namespaces or identity.namespace in namespaces)
            ]
            for identity in stale:
                del self._records[identity]
        return len(stale)

    async def list_all(self) -> list[ServiceRecord]:
        return sorted(self._records.values(), key=_sort_key)

    async def find_by_status(self, status: ServiceStatus) -> list[ServiceRecord]:
        return [r for r in await self.list_all() if r.status is status]

    async def find_by_namespace(self, namespace: str) -> list[ServiceRecord]:
        return [r for r in await self.list_all() if r.identity.namespace == namespace]

    async def delete_by_id(self, identity: ServiceIdentity) -> None:
        async with self._lock:
            self._records.pop(identity, None)

    async def exists(self, identity: ServiceIdentity) -> bool:
        return identity in self._records

    async def ping(self) -> bool:
        return True
