from apicatalog.core.errors import (
    CatalogError,
    ConfigurationError,
    ExitCode,
    NotFoundError,
    ProviderError,
    ValidationError,
    main_with_error_handling,
)

__all__ = [
    "CatalogError",
    "ConfigurationError",
    "ExitCode",
    "NotFoundError",
    "ProviderError",
    "ValidationError",
    "main_with_error_handling",
]
