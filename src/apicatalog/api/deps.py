from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from apicatalog.catalog.queries import CatalogQueryService
from apicatalog.catalog.refresh import RefreshOrchestrator
from apicatalog.catalog.trigger import RefreshTrigger
from apicatalog.domain.models import ServiceIdentity
from apicatalog.invocation import InvocationService
from apicatalog.runtime import CatalogRuntime


def get_runtime(request: Request) -> CatalogRuntime:
    runtime: CatalogRuntime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog runtime not initialised",
        )
    return runtime


def get_query_service(runtime: CatalogRuntime = Depends(get_runtime)) -> CatalogQueryService:  # noqa: B008
    return runtime.queries


def get_trigger(runtime: CatalogRuntime = Depends(get_runtime)) -> RefreshTrigger:  # noqa: B008
    return runtime.trigger


def get_orchestrator(runtime: CatalogRuntime = Depends(get_runtime)) -> RefreshOrchestrator:  # noqa: B008
    return runtime.orchestrator


def get_invocation_service(runtime: CatalogRuntime = Depends(get_runtime)) -> InvocationService:  # noqa: B008
    return runtime.invocations


def service_identity(namespace: str, name: str) -> ServiceIdentity:
    try:
        return ServiceIdentity(namespace, name)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
