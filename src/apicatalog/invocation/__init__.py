from apicatalog.invocation.client import EndpointClient, InvocationResult
from apicatalog.invocation.invoker import (
    EndpointInvoker,
    InvocationError,
    InvocationRequest,
    InvocationValidationError,
)
from apicatalog.invocation.service import InvocationService

__all__ = [
    "EndpointClient",
    "EndpointInvoker",
    "InvocationError",
    "InvocationRequest",
    "InvocationResult",
    "InvocationService",
    "InvocationValidationError",
]
