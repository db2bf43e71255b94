from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from apicatalog.api.deps import get_runtime
from apicatalog.catalog.lister import KubernetesServiceLister
from apicatalog.runtime import CatalogRuntime

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"


class ReadinessResponse(BaseModel):
    status: str
    catalog: str
    cluster: str


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy")


@router.get("/ready", response_model=ReadinessResponse, status_code=status.HTTP_200_OK)
async def readiness_check(
    runtime: CatalogRuntime = Depends(get_runtime),  # noqa: B008
) -> ReadinessResponse:
    """Readiness check with catalog store and cluster API connectivity."""
    catalog_status = "connected" if await runtime.store.ping() else "disconnected"

    cluster_status = "not_applicable"
    if isinstance(runtime.lister, KubernetesServiceLister):
        health = await runtime.lister.health_check()
        cluster_status = "connected" if health.healthy else "disconnected"

    overall_status = (
        "ready"
        if catalog_status == "connected" and cluster_status != "disconnected"
        else "not_ready"
    )

    return ReadinessResponse(
        status=overall_status,
        catalog=catalog_status,
        cluster=cluster_status,
    )
