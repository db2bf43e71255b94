from apicatalog.domain.models import (
    ClusterAddress,
    DescriptionPath,
    Operation,
    OperationParameter,
    ParameterLocation,
    ServiceIdentity,
    ServiceRecord,
    ServiceStatus,
    Specification,
)

__all__ = [
    "ClusterAddress",
    "DescriptionPath",
    "Operation",
    "OperationParameter",
    "ParameterLocation",
    "ServiceIdentity",
    "ServiceRecord",
    "ServiceStatus",
    "Specification",
]
