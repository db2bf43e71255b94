from __future__ import annotations

from dataclasses import dataclass

from apicatalog.domain.models import ServiceRecord

PLACEHOLDER_SERVICE_NAME = "{service-name}"
PLACEHOLDER_NAMESPACE = "{namespace}"
PLACEHOLDER_CLUSTER_IP = "{cluster-ip}"
PLACEHOLDER_PORT = "{port}"


@dataclass(frozen=True, slots=True)
class DescriptionUrlResolver:
    """Resolves where a record's OpenAPI document is fetched from.

    Without a template the record's own ``specification_url()`` is used.
    A template such as ``http://{service-name}.{namespace}.svc:{port}/docs``
    routes fetches through cluster DNS instead of the cluster IP.
    """

    template: str | None = None

    def resolve(self, record: ServiceRecord) -> str:
        template = self.template or ""
        if not template.strip():
            return record.specification_url()

        return (
            template.replace(PLACEHOLDER_SERVICE_NAME, record.identity.name)
            .replace(PLACEHOLDER_NAMESPACE, record.identity.namespace)
            .replace(PLACEHOLDER_CLUSTER_IP, record.address.ip)
            .replace(PLACEHOLDER_PORT, str(record.address.port))
        )
