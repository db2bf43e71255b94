"""Builders for OpenAPI documents and service candidates used across tests."""

import json

from apicatalog.catalog.lister import ServiceCandidate


def openapi_document(title="Ping API", version="1.0.0", paths=None, **extra):
    """Build a minimal OpenAPI 3.0 document as a JSON string."""
    if paths is None:
        paths = {
            "/ping": {
                "get": {
                    "operationId": "doPing",
                    "responses": {"200": {"description": "ok"}},
                }
            }
        }
    document = {
        "openapi": "3.0.3",
        "info": {"title": title, "version": version},
        "paths": paths,
    }
    document.update(extra)
    return json.dumps(document)


def candidate(name, namespace="default", address="10.0.0.1", port=8080, **kwargs):
    return ServiceCandidate(namespace=namespace, name=name, address=address, port=port, **kwargs)
