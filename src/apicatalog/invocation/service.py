from __future__ import annotations

from typing import Mapping

import structlog

from apicatalog.catalog.store import CatalogStore
from apicatalog.core.errors import NotFoundError
from apicatalog.domain.models import ServiceIdentity
from apicatalog.invocation.client import EndpointClient, InvocationResult
from apicatalog.invocation.invoker import EndpointInvoker, InvocationError

logger = structlog.get_logger()


class InvocationService:
    """Invokes catalogued operations on active services."""

    def __init__(
        self,
        store: CatalogStore,
        client: EndpointClient,
        invoker: EndpointInvoker | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._invoker = invoker or EndpointInvoker()

    async def invoke(
        self,
        identity: ServiceIdentity,
        operation_id: str,
        *,
        path_params: Mapping[str, str] | None = None,
        query_params: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> InvocationResult:
        log = logger.bind(service=str(identity), operation_id=operation_id)

        record = await self._store.find_by_id(identity)
        if record is None:
            raise NotFoundError(f"Service not found: {identity}", {"service": str(identity)})

        if not record.is_active():
            raise InvocationError(
                f"Service is not active: {record.status.description}",
                {"service": str(identity), "status": record.status.value},
            )

        operation = record.find_operation(operation_id)
        if operation is None:
            raise NotFoundError(
                f"Operation not found: {operation_id} in service {identity}",
                {"service": str(identity), "operation_id": operation_id},
            )

        request = self._invoker.prepare(record, operation, path_params, query_params, body)
        log.debug("endpoint_request_prepared", method=request.method, url=request.url)

        result = await self._client.invoke(request)
        if result.is_failure:
            log.warning("endpoint_invocation_error", url=request.url, error=result.error)
        else:
            log.info(
                "endpoint_invoked",
                url=request.url,
                status=result.status_code,
                duration_ms=result.duration_ms,
            )
        return result
