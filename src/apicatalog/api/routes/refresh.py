from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from apicatalog.api.deps import get_query_service, get_trigger
from apicatalog.catalog.queries import CatalogQueryService
from apicatalog.catalog.refresh import RefreshScope
from apicatalog.catalog.trigger import RefreshTrigger
from apicatalog.core.errors import ProviderError

router = APIRouter()
logger = structlog.get_logger()


class RefreshRequest(BaseModel):
    namespaces: list[str] = []
    force: bool = False


class RefreshResponse(BaseModel):
    created: int
    updated: int
    failed: int
    skipped: int
    total: int


class SchedulerState(BaseModel):
    enabled: bool
    running: bool
    interval_ms: int
    last_completed_at: datetime | None = None
    last_result: RefreshResponse | None = None


class CatalogStatusResponse(BaseModel):
    active: int
    unreachable: int
    no_spec: int
    total: int
    refresh: SchedulerState


@router.post("/refresh", response_model=RefreshResponse, status_code=status.HTTP_200_OK)
async def trigger_refresh(
    payload: RefreshRequest | None = None,
    trigger: RefreshTrigger = Depends(get_trigger),  # noqa: B008
) -> RefreshResponse:
    payload = payload or RefreshRequest()
    scope = RefreshScope.for_namespaces(payload.namespaces, force=payload.force)

    logger.info("refresh_requested", namespaces=payload.namespaces, force=payload.force)
    try:
        result = await trigger.trigger(scope)
    except ProviderError as exc:
        logger.exception("refresh_request_failed", error=exc.message)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Refresh failed: {exc.message}",
        ) from exc
    return RefreshResponse(**result.to_dict())


@router.get("/status", response_model=CatalogStatusResponse)
async def catalog_status(
    queries: CatalogQueryService = Depends(get_query_service),  # noqa: B008
    trigger: RefreshTrigger = Depends(get_trigger),  # noqa: B008
) -> CatalogStatusResponse:
    counts = await queries.service_counts()
    last = trigger.last_result

    return CatalogStatusResponse(
        **counts.to_dict(),
        refresh=SchedulerState(
            enabled=trigger.enabled,
            running=trigger.is_running,
            interval_ms=trigger.interval_ms,
            last_completed_at=trigger.last_completed_at,
            last_result=RefreshResponse(**last.to_dict()) if last else None,
        ),
    )
