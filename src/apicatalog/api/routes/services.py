"""Catalog query, operation and invocation routes."""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from apicatalog.api.deps import (
    get_invocation_service,
    get_orchestrator,
    get_query_service,
    service_identity,
)
from apicatalog.catalog.queries import CatalogQueryService
from apicatalog.catalog.refresh import RefreshOrchestrator
from apicatalog.core.errors import NotFoundError
from apicatalog.domain.models import Operation, ServiceIdentity, ServiceRecord, ServiceStatus
from apicatalog.invocation import InvocationError, InvocationService, InvocationValidationError

router = APIRouter()
logger = structlog.get_logger()


# -- Request / Response Models --


class ServiceSummary(BaseModel):
    id: str
    namespace: str
    name: str
    status: str
    status_description: str
    cluster_ip: str
    port: int
    description_path: str
    title: str | None = None
    version: str | None = None
    operation_count: int = 0
    discovered_at: datetime
    last_checked_at: datetime | None = None


class OperationSummary(BaseModel):
    operation_id: str
    method: str
    path: str
    summary: str | None = None
    tag: str | None = None


class ServiceDetail(ServiceSummary):
    tags: list[str] = []
    operations: list[OperationSummary] = []


class ParameterItem(BaseModel):
    name: str
    location: str
    required: bool
    description: str | None = None
    json_schema: str | None = None


class OperationDetail(OperationSummary):
    service: str
    description: str | None = None
    endpoint_url: str
    parameters: list[ParameterItem] = []
    request_body_schema: str | None = None
    response_schema: str | None = None


class InvokeRequest(BaseModel):
    path_params: dict[str, str] = {}
    query_params: dict[str, str] = {}
    body: str | None = None


class InvokeResponse(BaseModel):
    success: bool
    status_code: int
    body: str | None = None
    headers: dict[str, str] = {}
    duration_ms: int
    error: str | None = None


class OperationMatchItem(OperationSummary):
    service: str


class ServiceRefreshResponse(BaseModel):
    service: str
    refreshed: bool
    status: str


def _summary_fields(record: ServiceRecord) -> dict:
    spec = record.specification
    return {
        "id": record.identity.as_string(),
        "namespace": record.identity.namespace,
        "name": record.identity.name,
        "status": record.status.value,
        "status_description": record.status.description,
        "cluster_ip": record.address.ip,
        "port": record.address.port,
        "description_path": record.description_path.value,
        "title": spec.title if spec else None,
        "version": spec.version if spec else None,
        "operation_count": spec.operation_count if spec else 0,
        "discovered_at": record.discovered_at,
        "last_checked_at": record.last_checked_at,
    }


def _operation_summary(operation: Operation) -> OperationSummary:
    return OperationSummary(
        operation_id=operation.operation_id,
        method=operation.method,
        path=operation.path,
        summary=operation.summary,
        tag=operation.tag,
    )


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)


# -- Routes --


@router.get("/services", response_model=list[ServiceSummary])
async def list_services(
    namespace: str | None = None,
    service_status: ServiceStatus | None = Query(default=None, alias="status"),  # noqa: B008
    active_only: bool = False,
    queries: CatalogQueryService = Depends(get_query_service),  # noqa: B008
) -> list[ServiceSummary]:
    records = await queries.list_services(namespace, service_status, active_only)
    return [ServiceSummary(**_summary_fields(record)) for record in records]


@router.get("/services/{namespace}/{name}", response_model=ServiceDetail)
async def get_service(
    identity: ServiceIdentity = Depends(service_identity),  # noqa: B008
    queries: CatalogQueryService = Depends(get_query_service),  # noqa: B008
) -> ServiceDetail:
    try:
        record = await queries.get_service(identity)
    except NotFoundError as exc:
        raise _not_found(exc) from exc

    spec = record.specification
    return ServiceDetail(
        **_summary_fields(record),
        tags=spec.tags() if spec else [],
        operations=[_operation_summary(op) for op in record.all_operations()],
    )


@router.get("/services/{namespace}/{name}/operations", response_model=list[OperationSummary])
async def list_operations(
    tag: str | None = None,
    method: str | None = None,
    identity: ServiceIdentity = Depends(service_identity),  # noqa: B008
    queries: CatalogQueryService = Depends(get_query_service),  # noqa: B008
) -> list[OperationSummary]:
    try:
        operations = await queries.get_operations(identity, tag=tag, method=method)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return [_operation_summary(op) for op in operations]


@router.get(
    "/services/{namespace}/{name}/operations/{operation_id}",
    response_model=OperationDetail,
)
async def get_operation(
    operation_id: str,
    identity: ServiceIdentity = Depends(service_identity),  # noqa: B008
    queries: CatalogQueryService = Depends(get_query_service),  # noqa: B008
) -> OperationDetail:
    try:
        details = await queries.get_operation_details(identity, operation_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc

    op = details.operation
    return OperationDetail(
        service=identity.as_string(),
        operation_id=op.operation_id,
        method=op.method,
        path=op.path,
        summary=op.summary,
        tag=op.tag,
        description=op.description,
        endpoint_url=details.endpoint_url,
        parameters=[
            ParameterItem(
                name=p.name,
                location=p.location.value,
                required=p.required,
                description=p.description,
                json_schema=p.schema,
            )
            for p in op.parameters
        ],
        request_body_schema=op.request_body_schema,
        response_schema=op.response_schema,
    )


@router.post(
    "/services/{namespace}/{name}/operations/{operation_id}/invoke",
    response_model=InvokeResponse,
)
async def invoke_operation(
    operation_id: str,
    payload: InvokeRequest,
    identity: ServiceIdentity = Depends(service_identity),  # noqa: B008
    invocations: InvocationService = Depends(get_invocation_service),  # noqa: B008
) -> InvokeResponse:
    try:
        result = await invocations.invoke(
            identity,
            operation_id,
            path_params=payload.path_params,
            query_params=payload.query_params,
            body=payload.body,
        )
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except InvocationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message
        ) from exc
    except InvocationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message) from exc

    return InvokeResponse(
        success=result.is_success,
        status_code=result.status_code,
        body=result.body,
        headers=result.headers,
        duration_ms=result.duration_ms,
        error=result.error,
    )


@router.post("/services/{namespace}/{name}/refresh", response_model=ServiceRefreshResponse)
async def refresh_service(
    identity: ServiceIdentity = Depends(service_identity),  # noqa: B008
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),  # noqa: B008
    queries: CatalogQueryService = Depends(get_query_service),  # noqa: B008
) -> ServiceRefreshResponse:
    try:
        await queries.get_service(identity)
    except NotFoundError as exc:
        raise _not_found(exc) from exc

    refreshed = await orchestrator.refresh_one(identity)
    record = await queries.get_service(identity)
    logger.info("service_refresh_requested", service=str(identity), refreshed=refreshed)

    return ServiceRefreshResponse(
        service=identity.as_string(),
        refreshed=refreshed,
        status=record.status.value,
    )


@router.get("/operations", response_model=list[OperationMatchItem])
async def search_operations(
    q: str = Query(min_length=1),
    queries: CatalogQueryService = Depends(get_query_service),  # noqa: B008
) -> list[OperationMatchItem]:
    """Keyword search over the operations of every active service."""
    matches = await queries.search_operations(q)
    return [
        OperationMatchItem(
            service=match.service.as_string(),
            **_operation_summary(match.operation).model_dump(),
        )
        for match in matches
    ]
