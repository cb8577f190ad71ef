"""Declarative resources reconciled against the Kong Admin API."""

from kong_plugin_reconciler.resources.plugin import PluginReconciler
from kong_plugin_reconciler.resources.schema import PLUGIN_SCHEMA, PluginDeclaration, SchemaField
from kong_plugin_reconciler.resources.state import ResourceData, load_declaration

__all__ = [
    "PLUGIN_SCHEMA",
    "PluginDeclaration",
    "PluginReconciler",
    "ResourceData",
    "SchemaField",
    "load_declaration",
]
