from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import quote, urlencode

from apicatalog.core.errors import CatalogError, ValidationError
from apicatalog.domain.models import Operation, ParameterLocation, ServiceRecord

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class InvocationError(CatalogError):
    """Raised when an operation cannot be invoked in the service's current state."""


class InvocationValidationError(ValidationError):
    """Raised when required path or query parameters are missing."""


@dataclass(frozen=True, slots=True)
class InvocationRequest:
    url: str
    method: str
    body: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)


class EndpointInvoker:
    """Builds invocation requests for catalogued operations."""

    def prepare(
        self,
        record: ServiceRecord,
        operation: Operation,
        path_params: Mapping[str, str] | None = None,
        query_params: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> InvocationRequest:
        path_params = path_params or {}
        query_params = query_params or {}

        self._validate_required(operation, path_params, query_params)

        return InvocationRequest(
            url=self.build_url(record, operation, path_params, query_params),
            method=operation.method,
            body=body,
            headers=dict(JSON_HEADERS),
        )

    def build_url(
        self,
        record: ServiceRecord,
        operation: Operation,
        path_params: Mapping[str, str],
        query_params: Mapping[str, str],
    ) -> str:
        path = operation.path
        for name, value in path_params.items():
            path = path.replace(f"{{{name}}}", quote(str(value), safe=""))

        url = record.address.to_url(path)
        if query_params:
            url = f"{url}?{urlencode({k: str(v) for k, v in query_params.items()}, quote_via=quote)}"
        return url

    def _validate_required(
        self,
        operation: Operation,
        path_params: Mapping[str, str],
        query_params: Mapping[str, str],
    ) -> None:
        for param in operation.parameters:
            if not param.required:
                continue
            if param.location is ParameterLocation.PATH:
                provided = param.name in path_params
            elif param.location is ParameterLocation.QUERY:
                provided = param.name in query_params
            else:
                continue

            if not provided:
                raise InvocationValidationError(
                    f"Required {param.location.value} parameter '{param.name}' is missing",
                    {"operation_id": operation.operation_id, "parameter": param.name},
                )
