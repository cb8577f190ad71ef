"""Logging configuration for kong_plugin_reconciler."""

from kong_plugin_reconciler.logging.config import configure_logging

__all__ = ["configure_logging"]
