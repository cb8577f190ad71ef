"""Pydantic model for Kong Plugins.

Plugins in Kong add functionality to Services, Routes, Consumers, or
globally. This module holds the plugin entity as the reconciler sends it
to and reads it back from the Admin API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Scope kinds in precedence order, mapped to their Admin API collection
SCOPE_ENDPOINTS: dict[str, str] = {
    "service": "services",
    "route": "routes",
    "consumer": "consumers",
}


class KongPlugin(BaseModel):
    """Kong Plugin entity.

    A plugin is attached to at most one of service, route or consumer;
    with none set it applies globally. The scope fields are only ever
    read from Kong's responses and never sent in request bodies, since
    the scope is carried by the request path instead.

    Attributes:
        id: Identifier assigned by Kong on creation.
        name: Plugin name (e.g., 'rate-limiting', 'key-auth').
        config: Plugin-specific configuration.
        protocols: Request protocols that trigger the plugin.
        service: Service scope id.
        route: Route scope id.
        consumer: Consumer scope id.
        tags: Free-form labels, order preserved.
        enabled: Whether the plugin is active.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = Field(default=None, description="Unique identifier")
    name: str = Field(default="", description="Plugin name")
    config: dict[str, Any] | None = Field(default=None, description="Plugin configuration")
    protocols: list[str] = Field(default_factory=list, description="Triggering protocols")
    service: str | None = Field(default=None, description="Service scope")
    route: str | None = Field(default=None, description="Route scope")
    consumer: str | None = Field(default=None, description="Consumer scope")
    tags: list[str] = Field(default_factory=list, description="Entity tags")
    enabled: bool = Field(default=True, description="Whether plugin is active")

    @field_validator("service", "route", "consumer", mode="before")
    @classmethod
    def _flatten_reference(cls, v: Any) -> Any:
        """Accept ``{"id": ...}`` references as returned by Kong 1.0+."""
        if isinstance(v, dict):
            return v.get("id") or v.get("name")
        return v

    @field_validator("protocols", "tags", mode="before")
    @classmethod
    def _null_as_empty(cls, v: Any) -> Any:
        if v is None:
            return []
        return v

    @field_validator("id", mode="before")
    @classmethod
    def _empty_id_as_none(cls, v: Any) -> Any:
        return v or None

    @property
    def scope(self) -> tuple[str, str] | None:
        """Return ``(kind, id)`` of the first set scope, or None if global."""
        for kind in SCOPE_ENDPOINTS:
            value = getattr(self, kind)
            if value:
                return kind, value
        return None

    def to_json_payload(self) -> dict[str, Any]:
        """Convert to a JSON request body.

        ``id``, ``name``, ``config`` and ``protocols`` are omitted when
        empty; ``tags`` and ``enabled`` are always present; scope fields
        are never present.

        Returns:
            Dictionary suitable for a POST or PATCH JSON body.
        """
        payload: dict[str, Any] = {}
        if self.id:
            payload["id"] = self.id
        if self.name:
            payload["name"] = self.name
        if self.config:
            payload["config"] = self.config
        if self.protocols:
            payload["protocols"] = list(self.protocols)
        payload["tags"] = list(self.tags)
        payload["enabled"] = self.enabled
        return payload

    def to_form_payload(self) -> dict[str, str]:
        """Convert to form fields; only ``name`` is sent this way."""
        return {"name": self.name}
