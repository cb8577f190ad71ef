"""Reconciler for declared Kong plugin attachments.

This module provides the PluginReconciler class, which maps a declared
plugin (held in a ``ResourceData``) onto Kong Admin API calls and maps
Kong's responses back into the declared state. Each operation performs a
single HTTP round trip.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from kong_plugin_reconciler.integrations.kong.exceptions import (
    KongAPIError,
    KongConnectionError,
    KongPluginConflictError,
    KongPluginValidationError,
    KongUnexpectedStatusError,
)
from kong_plugin_reconciler.integrations.kong.models.plugin import (
    SCOPE_ENDPOINTS,
    KongPlugin,
)
from kong_plugin_reconciler.resources.schema import PLUGIN_SCHEMA
from kong_plugin_reconciler.resources.state import ResourceData

if TYPE_CHECKING:
    from kong_plugin_reconciler.integrations.kong.client import KongAdminClient, KongResponse

logger = structlog.get_logger()

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NO_CONTENT = 204
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


class PluginReconciler:
    """Create, read, update and delete Kong plugins from declared state.

    The reconciler is stateless between calls; the Admin API client is
    injected and owned by the caller.

    Example:
        >>> reconciler = PluginReconciler(client)
        >>> data = ResourceData(PLUGIN_SCHEMA, {"name": "cors", "protocols": ["http"]})
        >>> reconciler.create(data)
        >>> data.id
        '3f5e...'
    """

    _entity_name = "plugin"

    def __init__(self, client: KongAdminClient) -> None:
        """Initialize the reconciler.

        Args:
            client: Kong Admin API client instance.
        """
        self._client = client
        self._log = logger.bind(entity=self._entity_name)

    def create(self, data: ResourceData) -> None:
        """Create the declared plugin and record Kong's view of it.

        Args:
            data: Declared state; receives the new id and observed fields.

        Raises:
            KongPluginValidationError: If the declaration is invalid.
            KongConnectionError: If the request could not be sent.
            KongPluginConflictError: If Kong already has an identical plugin.
            KongUnexpectedStatusError: For any status other than 201.
        """
        self._validate(data)
        plugin = self.build_plugin(data)
        body = self.build_request_body(data, plugin)
        endpoint = f"{self.scope_prefix(data)}plugins/"

        self._log.info("creating_plugin", name=plugin.name, endpoint=endpoint)
        response = self._send("creating", "POST", endpoint, **body)

        if response.status_code == HTTP_CONFLICT:
            raise KongPluginConflictError(response_body=response.body, endpoint=endpoint)
        if response.status_code != HTTP_CREATED:
            raise self._unexpected(response, endpoint)

        created = self._decode(response, endpoint)
        self.set_plugin_to_resource_data(data, created)
        self._log.info("created_plugin", id=created.id, name=created.name)

    def read(self, data: ResourceData) -> None:
        """Refresh the state from Kong.

        A missing plugin is not an error: the id is cleared so that the
        caller recreates it on the next pass.

        Args:
            data: State holding the plugin id.

        Raises:
            KongConnectionError: If the request could not be sent.
            KongUnexpectedStatusError: For any status other than 200 or 404.
        """
        endpoint = f"plugins/{self._require_id(data)}"

        self._log.debug("reading_plugin", id=data.id)
        response = self._send("reading", "GET", endpoint)

        if response.status_code == HTTP_NOT_FOUND:
            self._log.info("plugin_gone", id=data.id)
            data.set_id("")
            return
        if response.status_code != HTTP_OK:
            raise self._unexpected(response, endpoint)

        plugin = self._decode(response, endpoint)
        self.set_plugin_to_resource_data(data, plugin)
        self._log.debug("read_plugin", id=plugin.id, name=plugin.name)

    def update(self, data: ResourceData) -> None:
        """Apply the declared fields to the existing plugin (partial update).

        Args:
            data: Declared state holding the plugin id.

        Raises:
            KongPluginValidationError: If the declaration is invalid.
            KongConnectionError: If the request could not be sent.
            KongUnexpectedStatusError: For any status other than 200.
        """
        plugin_id = self._require_id(data)
        self._validate(data)
        plugin = self.build_plugin(data)
        body = self.build_request_body(data, plugin)
        endpoint = f"plugins/{plugin_id}"

        self._log.info("updating_plugin", id=plugin_id, endpoint=endpoint)
        response = self._send("updating", "PATCH", endpoint, **body)

        if response.status_code != HTTP_OK:
            raise self._unexpected(response, endpoint)

        updated = self._decode(response, endpoint)
        self.set_plugin_to_resource_data(data, updated)
        self._log.info("updated_plugin", id=updated.id)

    def delete(self, data: ResourceData) -> None:
        """Delete the plugin.

        Args:
            data: State holding the plugin id.

        Raises:
            KongConnectionError: If the request could not be sent.
            KongUnexpectedStatusError: For any status other than 204.
        """
        endpoint = f"plugins/{self._require_id(data)}"

        self._log.info("deleting_plugin", id=data.id)
        response = self._send("deleting", "DELETE", endpoint)

        if response.status_code != HTTP_NO_CONTENT:
            raise self._unexpected(response, endpoint)

        self._log.info("deleted_plugin", id=data.id)

    def import_state(self, plugin_id: str) -> ResourceData:
        """Start managing an existing plugin; the id is used verbatim.

        Call ``read`` on the result to populate the remaining fields.
        """
        self._log.info("importing_plugin", id=plugin_id)
        return ResourceData(PLUGIN_SCHEMA, resource_id=plugin_id)

    @staticmethod
    def scope_prefix(data: ResourceData) -> str:
        """Return the path prefix of the declared scope, empty for global plugins."""
        for kind, collection in SCOPE_ENDPOINTS.items():
            scope_id, ok = data.get_ok(kind)
            if ok:
                return f"{collection}/{scope_id}/"
        return ""

    @staticmethod
    def build_plugin(data: ResourceData) -> KongPlugin:
        """Build the plugin entity from declared state."""
        return KongPlugin(
            id=data.id or None,
            name=data.get("name"),
            protocols=data.get("protocols"),
            service=data.get("service") or None,
            route=data.get("route") or None,
            consumer=data.get("consumer") or None,
            tags=data.get("tags"),
            enabled=data.get("enabled"),
        )

    def build_request_body(self, data: ResourceData, plugin: KongPlugin) -> dict[str, Any]:
        """Build the request body arguments for create and update.

        With ``config_json`` declared, the parsed configuration is attached
        and the whole plugin is sent as JSON. Without it only ``name`` is
        sent, form-urlencoded.

        Args:
            data: Declared state.
            plugin: Plugin entity built from ``data``; receives ``config``.

        Returns:
            Keyword arguments for ``KongAdminClient.send``.

        Raises:
            KongPluginValidationError: If ``config_json`` is not a JSON object.
        """
        config_json, ok = data.get_ok("config_json")
        if not ok:
            return {"data": plugin.to_form_payload()}

        try:
            config = json.loads(config_json)
        except json.JSONDecodeError as e:
            self._log.error("invalid_config_json", name=plugin.name, error=str(e))
            raise KongPluginValidationError(
                f"config_json is not valid JSON: {e}",
                errors=[f"config_json: {e}"],
            ) from e

        if not isinstance(config, dict):
            self._log.error("invalid_config_json", name=plugin.name, error="not an object")
            raise KongPluginValidationError(
                "config_json must be a JSON object",
                errors=["config_json: expected a JSON object"],
            )

        plugin.config = config
        return {"json": plugin.to_json_payload()}

    @staticmethod
    def set_plugin_to_resource_data(data: ResourceData, plugin: KongPlugin) -> None:
        """Write Kong's view of the plugin into the state.

        Kong versions differ in whether and how they echo the scope, so a
        scope already declared in ``data`` takes precedence over the
        response. This accepts some drift risk on the scope fields.
        """
        data.set_id(plugin.id)
        data.set("name", plugin.name)

        for kind in SCOPE_ENDPOINTS:
            declared, ok = data.get_ok(kind)
            if ok:
                scope: tuple[str, str] | None = (kind, declared)
                break
        else:
            scope = plugin.scope

        for kind in SCOPE_ENDPOINTS:
            data.set(kind, scope[1] if scope and scope[0] == kind else "")

        data.set("protocols", list(plugin.protocols))
        data.set("tags", list(plugin.tags))
        data.set("enabled", plugin.enabled)

    def _send(self, action: str, method: str, endpoint: str, **kwargs: Any) -> KongResponse:
        try:
            return self._client.send(method, endpoint, **kwargs)
        except KongConnectionError as e:
            self._log.error(f"{action}_plugin_failed", endpoint=endpoint, error=e.message)
            raise KongConnectionError(
                message=f"error while {action} plugin: {e.message}",
                endpoint=e.endpoint or endpoint,
                original_error=e.original_error or e,
            ) from e

    def _decode(self, response: KongResponse, endpoint: str) -> KongPlugin:
        try:
            return KongPlugin.model_validate(response.body)
        except ValidationError as e:
            self._log.error("plugin_decode_failed", endpoint=endpoint, error=str(e))
            raise KongAPIError(
                message=f"error while decoding plugin response: {e}",
                status_code=response.status_code,
                response_body=response.body,
                endpoint=endpoint,
            ) from e

    def _unexpected(self, response: KongResponse, endpoint: str) -> KongUnexpectedStatusError:
        self._log.warning("unexpected_status", endpoint=endpoint, status=response.status)
        return KongUnexpectedStatusError(
            status=response.status,
            status_code=response.status_code,
            response_body=response.body,
            endpoint=endpoint,
        )

    @staticmethod
    def _require_id(data: ResourceData) -> str:
        if not data.id:
            raise KongPluginValidationError("plugin id is required for this operation")
        return data.id

    @staticmethod
    def _validate(data: ResourceData) -> None:
        errors = data.validate()
        if errors:
            raise KongPluginValidationError(
                f"Invalid plugin declaration: {'; '.join(errors)}",
                errors=errors,
            )
