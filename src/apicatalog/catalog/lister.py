"""
Cluster service listers.

A lister returns the candidate services of one refresh pass. The
Kubernetes lister applies the annotation rules:

- ``openapi.apicatalog.io/enabled: "false"`` excludes a service
- ``openapi.apicatalog.io/path`` overrides the description path

Headless services and services without ports are never candidates.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Iterable, Protocol

import structlog

from apicatalog.core.errors import ProviderError
from apicatalog.domain.models import DEFAULT_DESCRIPTION_PATH

logger = structlog.get_logger()

ENABLED_ANNOTATION = "openapi.apicatalog.io/enabled"
PATH_ANNOTATION = "openapi.apicatalog.io/path"
COMMON_HTTP_PORTS = (80, 8080, 8000, 3000)

# Lazy import kubernetes to allow running without cluster access
_kubernetes_available: bool | None = None


def _check_kubernetes_available() -> bool:
    """Check if kubernetes package is installed."""
    global _kubernetes_available
    if _kubernetes_available is None:
        try:
            import kubernetes  # noqa: F401

            _kubernetes_available = True
        except ImportError:
            _kubernetes_available = False
    return _kubernetes_available


class ServiceListingError(ProviderError):
    """Raised when candidate services cannot be listed."""


@dataclass(frozen=True, slots=True)
class ServiceCandidate:
    """A service reported by a lister, before any fetch decision."""

    namespace: str
    name: str
    address: str
    port: int
    description_path: str = DEFAULT_DESCRIPTION_PATH


@dataclass
class ListerHealth:
    healthy: bool
    message: str
    latency_ms: float | None = None


class ServiceLister(Protocol):
    async def list_services(self) -> list[ServiceCandidate]: ...


@dataclass
class StaticServiceLister:
    """Lister over a fixed, mutable candidate list."""

    candidates: list[ServiceCandidate] = field(default_factory=list)

    async def list_services(self) -> list[ServiceCandidate]:
        return list(self.candidates)

    def replace(self, candidates: Iterable[ServiceCandidate]) -> None:
        self.candidates = list(candidates)


def select_port(ports: list[Any] | None) -> int | None:
    """Pick the port most likely to serve HTTP."""
    if not ports:
        return None

    for port in ports:
        if port.name and "http" in port.name.lower():
            return port.port

    for port in ports:
        if port.port in COMMON_HTTP_PORTS:
            return port.port

    return ports[0].port


@dataclass
class KubernetesServiceLister:
    """
    List candidate services from the Kubernetes API.

    Configuration:
        namespace: Namespace to search (None = all namespaces)
        label_selector: Optional label selector narrowing the search
        default_description_path: Path used when no annotation overrides it
        excluded_namespaces: Namespaces never listed
        kubeconfig: Path to kubeconfig file (optional)
        context: Kubeconfig context to use (optional)
        timeout: API request timeout in seconds
    """

    namespace: str | None = None
    label_selector: str | None = None
    default_description_path: str = DEFAULT_DESCRIPTION_PATH
    excluded_namespaces: tuple[str, ...] = ("kube-system",)
    kubeconfig: str | None = None
    context: str | None = None
    timeout: float = 30.0

    # Internal state
    _api_client: Any = field(default=None, repr=False, compare=False)
    _initialized: bool = field(default=False, repr=False, compare=False)

    def _ensure_initialized(self) -> None:
        """Initialize Kubernetes client if not already done."""
        if self._initialized:
            return

        if not _check_kubernetes_available():
            raise ServiceListingError(
                "kubernetes package not installed. Install with: pip install kubernetes"
            )

        from kubernetes import client, config

        # Try in-cluster config first, then kubeconfig
        try:
            config.load_incluster_config()
        except config.ConfigException:
            try:
                config.load_kube_config(
                    config_file=self.kubeconfig,
                    context=self.context,
                )
            except config.ConfigException as e:
                raise ServiceListingError(f"Failed to load Kubernetes config: {e}") from e

        self._api_client = client.ApiClient()
        self._initialized = True

    def _get_core_api(self) -> Any:
        """Get CoreV1Api client."""
        self._ensure_initialized()
        from kubernetes import client

        return client.CoreV1Api(self._api_client)

    async def _run_sync(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        """Run synchronous kubernetes API call in executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def list_services(self) -> list[ServiceCandidate]:
        """List candidate services, applying annotation and port rules."""
        kwargs: dict[str, Any] = {"timeout_seconds": int(self.timeout)}
        if self.label_selector:
            kwargs["label_selector"] = self.label_selector

        try:
            core_api = self._get_core_api()

            if self.namespace:
                svc_list = await self._run_sync(
                    core_api.list_namespaced_service, self.namespace, **kwargs
                )
            else:
                svc_list = await self._run_sync(core_api.list_service_for_all_namespaces, **kwargs)
        except ServiceListingError:
            raise
        except Exception as e:
            raise ServiceListingError(f"Failed to list services: {e}") from e

        candidates: list[ServiceCandidate] = []
        for svc in svc_list.items or []:
            candidate = self._to_candidate(svc)
            if candidate is not None:
                candidates.append(candidate)

        logger.info("k8s_services_listed", total=len(svc_list.items or []), candidates=len(candidates))
        return candidates

    def _to_candidate(self, svc: Any) -> ServiceCandidate | None:
        if svc.metadata is None or svc.spec is None:
            return None

        namespace = svc.metadata.namespace
        name = svc.metadata.name
        annotations = svc.metadata.annotations or {}

        if namespace in self.excluded_namespaces:
            return None

        if str(annotations.get(ENABLED_ANNOTATION, "")).lower() == "false":
            logger.debug("k8s_service_disabled", namespace=namespace, name=name)
            return None

        cluster_ip = svc.spec.cluster_ip
        if not cluster_ip or cluster_ip == "None":
            logger.debug("k8s_service_headless", namespace=namespace, name=name)
            return None

        port = select_port(svc.spec.ports)
        if port is None:
            logger.debug("k8s_service_no_port", namespace=namespace, name=name)
            return None

        description_path = annotations.get(PATH_ANNOTATION) or self.default_description_path

        return ServiceCandidate(
            namespace=namespace,
            name=name,
            address=cluster_ip,
            port=port,
            description_path=description_path,
        )

    async def health_check(self) -> ListerHealth:
        """Check Kubernetes API connectivity."""
        start = time.time()

        try:
            core_api = self._get_core_api()
            await self._run_sync(core_api.get_api_resources)
            latency = (time.time() - start) * 1000

            return ListerHealth(
                healthy=True,
                message="Connected to Kubernetes API",
                latency_ms=latency,
            )

        except ServiceListingError as e:
            return ListerHealth(healthy=False, message=str(e))
        except Exception as e:
            return ListerHealth(healthy=False, message=f"Kubernetes connection failed: {e}")
