"""Declarative state accessor for Kong resources.

``ResourceData`` is the record a reconciler reads the desired state from
and writes the observed state back into. Access is typed by the resource
schema: unset keys read as their default or zero value, and ``get_ok``
tells "unset" apart from "set".
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
import yaml

from kong_plugin_reconciler.integrations.kong.exceptions import KongPluginValidationError
from kong_plugin_reconciler.resources.schema import (
    PLUGIN_SCHEMA,
    SchemaField,
    declaration_errors,
)

logger = structlog.get_logger()


class ResourceData:
    """State record of one declared resource.

    Example:
        >>> data = ResourceData(PLUGIN_SCHEMA, {"name": "cors", "protocols": ["http"]})
        >>> data.get("enabled")
        True
        >>> data.get_ok("service")
        ('', False)
    """

    def __init__(
        self,
        schema: dict[str, SchemaField],
        values: dict[str, Any] | None = None,
        resource_id: str = "",
    ) -> None:
        """Initialize the state record.

        Args:
            schema: Schema describing the declarable keys.
            values: Initial values keyed by schema key.
            resource_id: Identifier of the remote resource, empty if none.
        """
        self._schema = schema
        self._values: dict[str, Any] = {}
        self._id = resource_id
        for key, value in (values or {}).items():
            self.set(key, value)

    @property
    def schema(self) -> dict[str, SchemaField]:
        """Return the schema of this record."""
        return self._schema

    @property
    def id(self) -> str:
        """Return the remote identifier, empty when the resource is absent."""
        return self._id

    def set_id(self, resource_id: str | None) -> None:
        """Set the remote identifier; an empty value marks the resource as gone."""
        self._id = resource_id or ""

    def _field(self, key: str) -> SchemaField:
        try:
            return self._schema[key]
        except KeyError:
            raise KeyError(f"'{key}' is not a key of this resource") from None

    def get(self, key: str) -> Any:
        """Get a value, falling back to the schema default, then the zero value."""
        schema_field = self._field(key)
        value = self._values.get(key)
        if value is not None:
            return list(value) if isinstance(value, list) else value
        if schema_field.default is not None:
            return schema_field.default
        return schema_field.zero()

    def get_ok(self, key: str) -> tuple[Any, bool]:
        """Get a value and whether it is set to a non-zero value."""
        value = self.get(key)
        return value, bool(value)

    def set(self, key: str, value: Any) -> None:
        """Set a value; None clears the key."""
        self._field(key)
        if isinstance(value, tuple):
            value = list(value)
        self._values[key] = value

    def validate(self) -> list[str]:
        """Validate the declared values against ``PluginDeclaration``.

        Returns:
            A list of validation messages; empty when the record is valid.
        """
        return declaration_errors(self._values)

    def to_dict(self) -> dict[str, Any]:
        """Render the id and every schema key with its effective value."""
        rendered: dict[str, Any] = {"id": self._id}
        for key in self._schema:
            rendered[key] = self.get(key)
        return rendered


def load_declaration(path: Path, resource_id: str = "") -> ResourceData:
    """Load a plugin declaration from a YAML file.

    A ``config`` mapping may be given instead of a ``config_json``
    string; it is serialized to JSON.

    Args:
        path: YAML file holding a mapping of plugin keys.
        resource_id: Remote identifier to attach, if already known.

    Returns:
        A plugin ``ResourceData``.

    Raises:
        KongPluginValidationError: If the file is not a mapping or holds unknown keys.
    """
    log = logger.bind(path=str(path))
    try:
        document = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        log.error("declaration_parse_failed", error=str(e))
        raise KongPluginValidationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(document, dict):
        raise KongPluginValidationError(f"Declaration in {path} must be a mapping")

    values = dict(document)
    if "config" in values:
        if "config_json" in values:
            raise KongPluginValidationError("Declare either config or config_json, not both")
        config = values.pop("config")
        if config is not None:
            values["config_json"] = json.dumps(config)

    unknown = declaration_errors(values, only={"extra_forbidden"})
    if unknown:
        raise KongPluginValidationError(
            f"Unknown keys in {path}: {'; '.join(unknown)}",
            errors=unknown,
        )

    log.debug("declaration_loaded", keys=sorted(values))
    return ResourceData(PLUGIN_SCHEMA, values, resource_id=resource_id)
