"""
Component wiring.

Builds the refresh pipeline, query and invocation services from settings.
One runtime per process: the fetch permit pool and the backoff gate are
shared by every refresh entry point.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from apicatalog.catalog.backoff import BackoffGate
from apicatalog.catalog.fetcher import SpecificationFetcher
from apicatalog.catalog.lister import KubernetesServiceLister, ServiceLister
from apicatalog.catalog.queries import CatalogQueryService
from apicatalog.catalog.refresh import RefreshOrchestrator
from apicatalog.catalog.store import CatalogStore, InMemoryCatalogStore
from apicatalog.catalog.trigger import RefreshTrigger
from apicatalog.catalog.urls import DescriptionUrlResolver
from apicatalog.config import Settings, get_settings
from apicatalog.core.errors import ConfigurationError
from apicatalog.invocation import EndpointClient, InvocationService

logger = structlog.get_logger()


@dataclass
class CatalogRuntime:
    settings: Settings
    store: CatalogStore
    lister: ServiceLister
    fetcher: SpecificationFetcher
    backoff: BackoffGate
    orchestrator: RefreshOrchestrator
    trigger: RefreshTrigger
    queries: CatalogQueryService
    endpoint_client: EndpointClient
    invocations: InvocationService

    async def aclose(self) -> None:
        await self.trigger.stop()
        await self.fetcher.aclose()
        await self.endpoint_client.aclose()


async def build_store(settings: Settings) -> CatalogStore:
    if settings.catalog_backend == "memory":
        return InMemoryCatalogStore()

    if settings.catalog_backend == "sql":
        from apicatalog.db.repositories import SqlCatalogStore
        from apicatalog.db.session import create_schema, get_session_factory, init_engine

        init_engine(settings)
        if settings.database_url.startswith("sqlite"):
            await create_schema()
        return SqlCatalogStore(get_session_factory())

    raise ConfigurationError(
        f"Unsupported catalog backend: {settings.catalog_backend}",
        {"catalog_backend": settings.catalog_backend},
    )


def build_lister(settings: Settings) -> KubernetesServiceLister:
    return KubernetesServiceLister(
        namespace=settings.k8s_namespace,
        label_selector=settings.k8s_label_selector,
        default_description_path=settings.k8s_default_description_path,
        excluded_namespaces=tuple(settings.k8s_excluded_namespaces),
        kubeconfig=settings.kubeconfig,
        context=settings.k8s_context,
        timeout=settings.k8s_timeout_seconds,
    )


async def build_runtime(
    settings: Settings | None = None,
    *,
    store: CatalogStore | None = None,
    lister: ServiceLister | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> CatalogRuntime:
    """Assemble the runtime; ``store``, ``lister`` and ``http_client`` override the defaults."""
    cfg = settings or get_settings()

    store = store or await build_store(cfg)
    lister = lister or build_lister(cfg)

    fetcher = SpecificationFetcher(
        max_concurrent_requests=cfg.fetch_max_concurrent_requests,
        timeout=cfg.fetch_timeout_seconds,
        retry_attempts=cfg.fetch_retry_attempts,
        client=http_client,
    )
    backoff = BackoffGate(
        cfg.backoff_max_failures,
        cfg.backoff_base_seconds,
        cfg.backoff_max_seconds,
    )
    orchestrator = RefreshOrchestrator(
        lister,
        store,
        fetcher,
        backoff=backoff,
        url_resolver=DescriptionUrlResolver(cfg.description_url_template),
    )
    trigger = RefreshTrigger(
        orchestrator,
        interval_ms=cfg.refresh_interval_ms,
        enabled=cfg.refresh_enabled,
    )
    endpoint_client = EndpointClient(timeout=cfg.invoke_timeout_seconds, client=http_client)

    logger.info(
        "runtime_built",
        catalog_backend=cfg.catalog_backend,
        lister=type(lister).__name__,
        refresh_enabled=cfg.refresh_enabled,
    )

    return CatalogRuntime(
        settings=cfg,
        store=store,
        lister=lister,
        fetcher=fetcher,
        backoff=backoff,
        orchestrator=orchestrator,
        trigger=trigger,
        queries=CatalogQueryService(store),
        endpoint_client=endpoint_client,
        invocations=InvocationService(store, endpoint_client),
    )
