"""Declarative schema for the Kong plugin resource.

``PLUGIN_SCHEMA`` describes the keys an operator may declare for a plugin,
their types and defaults; ``ResourceData`` uses it for typed access.
``PluginDeclaration`` validates a declaration before it is sent to Kong.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from kong_plugin_reconciler.integrations.kong.models.plugin import SCOPE_ENDPOINTS

FieldType = Literal["string", "bool", "list"]

ZERO_VALUES: dict[str, Any] = {
    "string": "",
    "bool": False,
    "list": [],
}

# Error types reported with a short message instead of pydantic's text
_SHORT_MESSAGES: dict[str, str] = {
    "missing": "required",
    "string_too_short": "required",
    "too_short": "required",
    "extra_forbidden": "unknown key",
}


@dataclass(frozen=True)
class SchemaField:
    """One declarable key of a resource.

    Attributes:
        type: Value type: string, bool, or list of strings.
        default: Value returned when the key is unset.
        description: Human-readable description.
    """

    type: FieldType
    default: Any = None
    description: str = ""

    def zero(self) -> Any:
        """Return the zero value for this field's type."""
        value = ZERO_VALUES[self.type]
        return list(value) if isinstance(value, list) else value


PLUGIN_SCHEMA: dict[str, SchemaField] = {
    "name": SchemaField(type="string", description="The name of the plugin to use."),
    "protocols": SchemaField(
        type="list",
        description="A list of the request protocols that will trigger this plugin.",
    ),
    "config_json": SchemaField(
        type="string",
        description="Plugin configuration as a JSON object string.",
    ),
    "service": SchemaField(
        type="string",
        description="The id of the service to scope this plugin to.",
    ),
    "route": SchemaField(
        type="string",
        description="The id of the route to scope this plugin to.",
    ),
    "consumer": SchemaField(
        type="string",
        description="The id of the consumer to scope this plugin to.",
    ),
    "tags": SchemaField(
        type="list",
        description="An optional set of strings for grouping and filtering.",
    ),
    "enabled": SchemaField(
        type="bool",
        default=True,
        description="Whether the plugin is active.",
    ),
}


class PluginDeclaration(BaseModel):
    """Validated plugin declaration.

    Empty scope strings count as unset, so at most one of service, route
    and consumer may carry a value.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    name: str = Field(min_length=1, description="Plugin name")
    protocols: list[str] = Field(min_length=1, description="Triggering protocols")
    config_json: str | None = Field(default=None, description="Configuration as JSON")
    service: str | None = Field(default=None, description="Service scope id")
    route: str | None = Field(default=None, description="Route scope id")
    consumer: str | None = Field(default=None, description="Consumer scope id")
    tags: list[str] = Field(default_factory=list, description="Tags for filtering")
    enabled: bool = Field(default=True, description="Whether the plugin is active")

    @model_validator(mode="after")
    def check_single_scope(self) -> PluginDeclaration:
        """Reject declarations attached to more than one scope."""
        scopes = [kind for kind in SCOPE_ENDPOINTS if getattr(self, kind)]
        if len(scopes) > 1:
            raise ValueError(
                f"only one of service, route or consumer may be set, got {', '.join(scopes)}"
            )
        return self


def _format_error(error: Any) -> str:
    message = _SHORT_MESSAGES.get(error["type"])
    if message is None:
        ctx_error = error.get("ctx", {}).get("error")
        message = str(ctx_error) if ctx_error is not None else error["msg"]
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {message}" if location else message


def declaration_errors(
    values: dict[str, Any], only: Collection[str] | None = None
) -> list[str]:
    """Validate declared values and return readable error messages.

    Args:
        values: Declared keys and values; ``None`` values count as unset.
        only: If given, report only errors of these pydantic error types.

    Returns:
        Messages such as ``"name: required"``; empty when valid.
    """
    declared = {key: value for key, value in values.items() if value is not None}
    try:
        PluginDeclaration.model_validate(declared)
    except ValidationError as e:
        return [
            _format_error(error)
            for error in e.errors()
            if only is None or error["type"] in only
        ]
    return []
