"""Kong API entity models."""

from kong_plugin_reconciler.integrations.kong.models.plugin import (
    SCOPE_ENDPOINTS,
    KongPlugin,
)

__all__ = [
    "SCOPE_ENDPOINTS",
    "KongPlugin",
]
