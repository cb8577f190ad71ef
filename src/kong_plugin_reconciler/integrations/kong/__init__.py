"""Kong Gateway integration - HTTP client, configuration and API models."""

from kong_plugin_reconciler.integrations.kong.client import KongAdminClient, KongResponse
from kong_plugin_reconciler.integrations.kong.config import (
    KongAuthConfig,
    KongConnectionConfig,
    ReconcilerConfig,
)
from kong_plugin_reconciler.integrations.kong.exceptions import (
    KongAPIError,
    KongConnectionError,
    KongPluginConflictError,
    KongPluginValidationError,
    KongUnexpectedStatusError,
)

__all__ = [
    "KongAPIError",
    "KongAdminClient",
    "KongAuthConfig",
    "KongConnectionConfig",
    "KongConnectionError",
    "KongPluginConflictError",
    "KongPluginValidationError",
    "KongResponse",
    "KongUnexpectedStatusError",
    "ReconcilerConfig",
]
