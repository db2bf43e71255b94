"""
Service catalog refresh pipeline.

Lists cluster services, fetches and projects their OpenAPI documents under
bounded concurrency and failure backoff, and reconciles the catalog store
against the live service set.
"""

from apicatalog.catalog.backoff import BackoffGate
from apicatalog.catalog.fetcher import SpecificationFetcher
from apicatalog.catalog.lister import (
    KubernetesServiceLister,
    ListerHealth,
    ServiceCandidate,
    ServiceLister,
    ServiceListingError,
    StaticServiceLister,
)
from apicatalog.catalog.projector import (
    SpecificationParseError,
    SpecificationProjector,
    synthesize_operation_id,
)
from apicatalog.catalog.queries import (
    CatalogQueryService,
    OperationDetails,
    OperationMatch,
    OperationMatcher,
    ServiceCounts,
)
from apicatalog.catalog.refresh import RefreshOrchestrator, RefreshResult, RefreshScope
from apicatalog.catalog.store import CatalogStore, InMemoryCatalogStore
from apicatalog.catalog.trigger import RefreshTrigger
from apicatalog.catalog.urls import DescriptionUrlResolver

__all__ = [
    # Pipeline
    "BackoffGate",
    "SpecificationFetcher",
    "SpecificationProjector",
    "SpecificationParseError",
    "synthesize_operation_id",
    "RefreshOrchestrator",
    "RefreshResult",
    "RefreshScope",
    "RefreshTrigger",
    "DescriptionUrlResolver",
    # Listers
    "ServiceCandidate",
    "ServiceLister",
    "ServiceListingError",
    "StaticServiceLister",
    "KubernetesServiceLister",
    "ListerHealth",
    # Store
    "CatalogStore",
    "InMemoryCatalogStore",
    # Queries
    "CatalogQueryService",
    "OperationMatcher",
    "OperationMatch",
    "OperationDetails",
    "ServiceCounts",
]
