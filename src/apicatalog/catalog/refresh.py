"""
Refresh orchestration.

One refresh pass lists candidate services, fetches and projects the
OpenAPI document of every candidate that is not in failure backoff,
persists each record, and finally reconciles the catalog by deleting
records whose services were not listed.

Candidates are processed concurrently; the fetcher's permit pool bounds
the number of requests in flight. Reconciliation waits for every
candidate to finish.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterable

import structlog

from apicatalog.catalog.backoff import BackoffGate
from apicatalog.catalog.fetcher import SpecificationFetcher
from apicatalog.catalog.lister import ServiceCandidate, ServiceLister
from apicatalog.catalog.projector import SpecificationParseError, SpecificationProjector
from apicatalog.catalog.store import CatalogStore
from apicatalog.catalog.urls import DescriptionUrlResolver
from apicatalog.domain.models import (
    ClusterAddress,
    DescriptionPath,
    ServiceIdentity,
    ServiceRecord,
)
from apicatalog.logging import bind_context

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class RefreshScope:
    """Which candidates a pass covers and whether backoff is bypassed.

    An empty ``namespaces`` tuple means every namespace. When a pass lists
    no candidates at all, reconciliation only runs with ``prune_empty``.
    """

    namespaces: tuple[str, ...] = ()
    force: bool = False
    prune_empty: bool = False

    @classmethod
    def all(cls) -> RefreshScope:
        return cls()

    @classmethod
    def forced(cls) -> RefreshScope:
        return cls(force=True)

    @classmethod
    def for_namespaces(cls, namespaces: Iterable[str], *, force: bool = False) -> RefreshScope:
        return cls(namespaces=tuple(namespaces), force=force)

    def includes_namespace(self, namespace: str) -> bool:
        return not self.namespaces or namespace in self.namespaces


@dataclass(frozen=True, slots=True)
class RefreshResult:
    created: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class _Outcome(Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class RefreshOrchestrator:
    """Runs discovery-to-reconciliation passes over the catalog."""

    def __init__(
        self,
        lister: ServiceLister,
        store: CatalogStore,
        fetcher: SpecificationFetcher,
        *,
        projector: SpecificationProjector | None = None,
        backoff: BackoffGate | None = None,
        url_resolver: DescriptionUrlResolver | None = None,
    ) -> None:
        self._lister = lister
        self._store = store
        self._fetcher = fetcher
        self._projector = projector or SpecificationProjector()
        self._backoff = backoff or BackoffGate()
        self._url_resolver = url_resolver or DescriptionUrlResolver()

    @property
    def backoff(self) -> BackoffGate:
        return self._backoff

    async def refresh(self, scope: RefreshScope | None = None) -> RefreshResult:
        """Run one full pass. Listing and reconciliation errors propagate."""
        scope = scope or RefreshScope.all()
        log = logger.bind(namespaces=list(scope.namespaces) or "all", force=scope.force)
        log.info("refresh_started")

        candidates = await self._lister.list_services()
        in_scope = [c for c in candidates if scope.includes_namespace(c.namespace)]
        log.info("refresh_candidates_listed", listed=len(candidates), in_scope=len(in_scope))

        failed = 0
        work: dict[ServiceIdentity, ServiceCandidate] = {}
        for candidate in in_scope:
            try:
                identity = ServiceIdentity(candidate.namespace, candidate.name)
            except ValueError as exc:
                failed += 1
                log.error("refresh_candidate_invalid", candidate=repr(candidate), error=str(exc))
                continue
            if identity in work:
                log.warning("refresh_candidate_duplicate", service=str(identity))
                continue
            work[identity] = candidate

        results = await asyncio.gather(
            *(self._process(identity, candidate, scope) for identity, candidate in work.items()),
            return_exceptions=True,
        )

        created = updated = skipped = 0
        for identity, outcome in zip(work, results, strict=True):
            if isinstance(outcome, Exception):
                failed += 1
                log.error(
                    "refresh_service_failed",
                    service=str(identity),
                    error_type=type(outcome).__name__,
                    error=str(outcome),
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            elif outcome is _Outcome.CREATED:
                created += 1
            elif outcome is _Outcome.UPDATED:
                updated += 1
            else:
                skipped += 1

        await self._reconcile(set(work), scope, log)

        result = RefreshResult(
            created=created,
            updated=updated,
            failed=failed,
            skipped=skipped,
            total=len(in_scope),
        )
        log.info("refresh_completed", **result.to_dict())
        return result

    async def refresh_one(self, identity: ServiceIdentity) -> bool:
        """Refresh a single catalogued service outside the scheduled cycle.

        Bypasses the backoff gate but still reports the outcome to it.
        Returns True only when a specification was attached.
        """
        log = bind_context(service=str(identity))
        record = await self._store.find_by_id(identity)
        if record is None:
            log.warning("refresh_one_not_found")
            return False

        attached = await self._contact(record, log)
        await self._store.save(record)
        return attached

    async def _process(
        self,
        identity: ServiceIdentity,
        candidate: ServiceCandidate,
        scope: RefreshScope,
    ) -> _Outcome:
        log = bind_context(service=str(identity))
        address = ClusterAddress(candidate.address, candidate.port)
        description_path = DescriptionPath.of(candidate.description_path)

        record = await self._store.find_by_id(identity)
        is_new = record is None
        relocated = False

        if record is None:
            record = ServiceRecord.discover(identity, address, description_path)
        elif record.address != address or record.description_path != description_path:
            log.info(
                "service_relocated",
                old_url=record.specification_url(),
                new_url=address.to_url(description_path.value),
            )
            record = ServiceRecord.reconstitute(
                identity,
                address,
                description_path,
                record.discovered_at,
                record.status,
                record.last_checked_at,
                record.specification,
            )
            relocated = True

        if not is_new and not scope.force and self._backoff.should_skip(identity):
            log.debug("refresh_service_skipped", failures=self._backoff.failure_count(identity))
            if relocated:
                await self._store.save(record)
            return _Outcome.SKIPPED

        await self._contact(record, log)
        await self._store.save(record)
        return _Outcome.CREATED if is_new else _Outcome.UPDATED

    async def _contact(self, record: ServiceRecord, log: structlog.stdlib.BoundLogger) -> bool:
        """Fetch, project and apply the record's transition. Returns True on attach."""
        url = self._url_resolver.resolve(record)
        document = await self._fetcher.fetch(url)

        if document is None:
            log.warning("spec_unavailable", url=url)
            record.mark_no_spec()
            self._backoff.record_failure(record.identity)
            return False

        try:
            spec = await asyncio.to_thread(self._projector.project, document)
        except SpecificationParseError as exc:
            log.warning("spec_parse_failed", url=url, error=exc.message, details=exc.details)
            record.mark_no_spec()
            self._backoff.record_failure(record.identity)
            return False

        record.attach_specification(spec)
        self._backoff.record_success(record.identity)
        log.info("spec_attached", url=url, title=spec.title, operations=spec.operation_count)
        return True

    async def _reconcile(
        self,
        identities: set[ServiceIdentity],
        scope: RefreshScope,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        if not identities and not scope.prune_empty:
            log.warning("refresh_reconcile_skipped", reason="no_candidates")
            return

        deleted = await self._store.delete_not_in(identities, namespaces=scope.namespaces or None)
        self._backoff.prune(identities, namespaces=scope.namespaces or None)
        if deleted:
            log.info("refresh_stale_services_deleted", deleted=deleted)
