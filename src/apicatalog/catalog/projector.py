"""
Projection of raw OpenAPI documents into the catalog's operation model.

Structural validation is delegated to openapi-pydantic; this module owns
the normalization: one Operation per (path, method), first tag only,
JSON-only request and response schemas, and deterministic ids for
operations that do not declare one.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

import structlog
import yaml
from openapi_pydantic import parse_obj
from pydantic import ValidationError as PydanticValidationError

from apicatalog.core.errors import ValidationError
from apicatalog.domain.models import (
    Operation,
    OperationParameter,
    ParameterLocation,
    Specification,
)

logger = structlog.get_logger()

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "head", "options")
JSON_MEDIA_TYPE = "application/json"
SUCCESS_STATUS = "200"
CREATED_STATUS = "201"

_MAX_REF_DEPTH = 32


class SpecificationParseError(ValidationError):
    """Raised when a document is not a structurally valid OpenAPI description."""


def synthesize_operation_id(method: str, path: str) -> str:
    """Build a stable id from method and path: ``GET /users/{id}`` -> ``get_users_id``."""
    clean_path = path.replace("{", "").replace("}", "").replace("/", "_").replace("-", "_")
    return f"{method.lower()}{clean_path}"


def _stringify_keys(node: Any) -> Any:
    # YAML reads unquoted status codes such as 200 as ints
    if isinstance(node, dict):
        return {str(key): _stringify_keys(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_stringify_keys(item) for item in node]
    return node


def _load_document(raw_document: str) -> dict[str, Any]:
    try:
        document = json.loads(raw_document)
    except json.JSONDecodeError:
        try:
            document = _stringify_keys(yaml.safe_load(raw_document))
        except yaml.YAMLError as exc:
            raise SpecificationParseError(
                "Document is neither valid JSON nor YAML", {"error": str(exc)}
            ) from exc

    if not isinstance(document, dict):
        raise SpecificationParseError(
            "Document root must be an object",
            {"root_type": type(document).__name__},
        )
    return document


def _lenient_parameters(parameters: Any) -> Any:
    if not isinstance(parameters, list):
        return parameters
    kept = []
    for param in parameters:
        if isinstance(param, Mapping) and "$ref" not in param:
            location = param.get("in")
            if not isinstance(location, str) or ParameterLocation.parse(location) is None:
                continue
            if not param.get("name"):
                continue
            param = {**param, "in": location.lower()}
        kept.append(param)
    return kept


def _validation_view(document: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``document`` relaxed where projection is lenient.

    Parameter locations are lowercased and unknown ones dropped; operations
    without ``responses`` get an empty map.
    """
    view = dict(document)

    paths = document.get("paths")
    if isinstance(paths, Mapping):
        relaxed_paths: dict[str, Any] = {}
        for path, path_item in paths.items():
            if isinstance(path_item, Mapping):
                path_item = dict(path_item)
                if "parameters" in path_item:
                    path_item["parameters"] = _lenient_parameters(path_item["parameters"])
                for method in HTTP_METHODS:
                    operation = path_item.get(method)
                    if not isinstance(operation, Mapping):
                        continue
                    operation = dict(operation)
                    operation.setdefault("responses", {})
                    if "parameters" in operation:
                        operation["parameters"] = _lenient_parameters(operation["parameters"])
                    path_item[method] = operation
            relaxed_paths[path] = path_item
        view["paths"] = relaxed_paths

    components = document.get("components")
    if isinstance(components, Mapping) and isinstance(components.get("parameters"), Mapping):
        shared = {}
        for name, param in components["parameters"].items():
            kept = _lenient_parameters([param])
            if kept:
                shared[name] = kept[0]
        view["components"] = {**components, "parameters": shared}

    return view


class _RefResolver:
    """Inlines local ``#/...`` references; cyclic references stay as ``$ref``."""

    def __init__(self, document: Mapping[str, Any]) -> None:
        self._document = document

    def _lookup(self, ref: str) -> Any:
        node: Any = self._document
        for token in ref[2:].split("/"):
            token = token.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, Mapping) or token not in node:
                return None
            node = node[token]
        return node

    def resolve(self, node: Any, seen: tuple[str, ...] = ()) -> Any:
        if isinstance(node, Mapping):
            ref = node.get("$ref")
            if isinstance(ref, str) and ref.startswith("#/"):
                if ref in seen or len(seen) >= _MAX_REF_DEPTH:
                    return dict(node)
                target = self._lookup(ref)
                if target is None:
                    return dict(node)
                return self.resolve(target, seen + (ref,))
            return {key: self.resolve(value, seen) for key, value in node.items()}
        if isinstance(node, list):
            return [self.resolve(item, seen) for item in node]
        return node


def _schema_to_json(schema: Any) -> str | None:
    if schema is None:
        return None
    try:
        return json.dumps(schema, separators=(",", ":"))
    except (TypeError, ValueError):
        schema_type = schema.get("type") if isinstance(schema, Mapping) else None
        return json.dumps({"type": schema_type})


def _json_schema_from_content(content: Any) -> str | None:
    if not isinstance(content, Mapping):
        return None
    media = content.get(JSON_MEDIA_TYPE)
    if not isinstance(media, Mapping) or media.get("schema") is None:
        return None
    return _schema_to_json(media["schema"])


class SpecificationProjector:
    """Turns a raw OpenAPI document into a :class:`Specification`."""

    def project(self, raw_document: str) -> Specification:
        if raw_document is None:
            raise SpecificationParseError("Document cannot be None")

        document = _load_document(raw_document)

        version = document.get("openapi")
        if isinstance(version, float):
            # unquoted YAML such as ``openapi: 3.1``
            version = document["openapi"] = str(version)
        if not isinstance(version, str) or not version.startswith("3."):
            raise SpecificationParseError(
                "Document is not an OpenAPI 3 description",
                {"openapi": version, "swagger": document.get("swagger")},
            )

        try:
            api = parse_obj(_validation_view(document))
        except (PydanticValidationError, ValueError, TypeError) as exc:
            raise SpecificationParseError(
                "Failed to parse OpenAPI specification",
                {"error": str(exc).splitlines()[0] if str(exc) else type(exc).__name__},
            ) from exc

        resolved = _RefResolver(document).resolve(document)
        operations = self._extract_operations(resolved.get("paths") or {})

        return Specification(
            raw_document=raw_document,
            title=api.info.title,
            version=api.info.version,
            operations=tuple(operations),
        )

    def _extract_operations(self, paths: Mapping[str, Any]) -> list[Operation]:
        operations: list[Operation] = []

        for path, path_item in paths.items():
            if not isinstance(path_item, Mapping):
                continue
            shared_parameters = path_item.get("parameters") or []

            for method in HTTP_METHODS:
                source = path_item.get(method)
                if not isinstance(source, Mapping):
                    continue
                operations.append(self._build_operation(path, method, source, shared_parameters))

        return operations

    def _build_operation(
        self,
        path: str,
        method: str,
        source: Mapping[str, Any],
        shared_parameters: list[Any],
    ) -> Operation:
        operation_id = source.get("operationId") or synthesize_operation_id(method, path)

        tags = source.get("tags") or []
        tag = tags[0] if tags else None

        return Operation(
            operation_id=operation_id,
            method=method,
            path=path,
            summary=source.get("summary"),
            description=source.get("description"),
            tag=tag,
            parameters=tuple(
                self._extract_parameters(shared_parameters, source.get("parameters") or [])
            ),
            request_body_schema=self._extract_request_body_schema(source),
            response_schema=self._extract_response_schema(source),
        )

    def _extract_parameters(
        self, shared: list[Any], declared: list[Any]
    ) -> list[OperationParameter]:
        # Operation-level parameters override path-level ones with the same name and location
        merged: dict[tuple[str, str], Mapping[str, Any]] = {}
        for param in [*shared, *declared]:
            if not isinstance(param, Mapping) or not param.get("name"):
                continue
            merged[(param["name"], str(param.get("in", "")).lower())] = param

        parameters: list[OperationParameter] = []
        for param in merged.values():
            location = ParameterLocation.parse(param.get("in"))
            if location is None:
                continue
            parameters.append(
                OperationParameter(
                    name=param["name"],
                    location=location,
                    required=param.get("required") is True,
                    description=param.get("description"),
                    schema=_schema_to_json(param.get("schema")),
                )
            )
        return parameters

    def _extract_request_body_schema(self, source: Mapping[str, Any]) -> str | None:
        request_body = source.get("requestBody")
        if not isinstance(request_body, Mapping):
            return None
        return _json_schema_from_content(request_body.get("content"))

    def _extract_response_schema(self, source: Mapping[str, Any]) -> str | None:
        responses = source.get("responses")
        if not isinstance(responses, Mapping):
            return None

        response = responses.get(SUCCESS_STATUS)
        if response is None:
            response = responses.get(CREATED_STATUS)
        if not isinstance(response, Mapping):
            return None
        return _json_schema_from_content(response.get("content"))
