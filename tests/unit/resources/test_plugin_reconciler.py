"""Unit tests for PluginReconciler."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from kong_plugin_reconciler.integrations.kong.client import KongResponse
from kong_plugin_reconciler.integrations.kong.exceptions import (
    KongAPIError,
    KongConnectionError,
    KongPluginConflictError,
    KongPluginValidationError,
    KongUnexpectedStatusError,
)
from kong_plugin_reconciler.resources.plugin import PluginReconciler
from kong_plugin_reconciler.resources.state import ResourceData

MakeResponse = Callable[..., KongResponse]
MakeData = Callable[..., ResourceData]

PLUGIN_BODY: dict[str, Any] = {
    "id": "plg-1",
    "name": "rate-limiting",
    "config": {"minute": 20},
    "protocols": ["http", "https"],
    "tags": ["team-a"],
    "enabled": True,
    "service": None,
    "route": None,
    "consumer": None,
}


@pytest.fixture
def reconciler(mock_client: MagicMock) -> PluginReconciler:
    """Create a PluginReconciler with mock client."""
    return PluginReconciler(mock_client)


def _sent(mock_client: MagicMock) -> tuple[str, str, dict[str, Any]]:
    """Return method, endpoint and keyword arguments of the single send call."""
    mock_client.send.assert_called_once()
    args, kwargs = mock_client.send.call_args
    return args[0], args[1], kwargs


class TestScopePrefix:
    """Tests for scope path construction."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("scope", "expected"),
        [
            ("service", "services/svc-123/plugins/"),
            ("route", "routes/svc-123/plugins/"),
            ("consumer", "consumers/svc-123/plugins/"),
        ],
    )
    def test_create_uses_scope_prefix(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
        scope: str,
        expected: str,
    ) -> None:
        """create should POST under the declared scope's collection."""
        mock_client.send.return_value = make_response(201, PLUGIN_BODY)

        reconciler.create(plugin_data(**{scope: "svc-123"}))

        method, endpoint, _ = _sent(mock_client)
        assert method == "POST"
        assert endpoint == expected

    @pytest.mark.unit
    def test_create_global_has_no_prefix(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """create without a scope should POST to plugins/."""
        mock_client.send.return_value = make_response(201, PLUGIN_BODY)

        reconciler.create(plugin_data())

        _, endpoint, _ = _sent(mock_client)
        assert endpoint == "plugins/"

    @pytest.mark.unit
    def test_empty_scope_value_is_unset(self, plugin_data: MakeData) -> None:
        """An empty scope string should not produce a prefix."""
        assert PluginReconciler.scope_prefix(plugin_data(service="")) == ""


class TestRequestBody:
    """Tests for request body construction."""

    @pytest.mark.unit
    def test_config_json_sends_full_plugin_as_json(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """With config_json the whole plugin is sent as JSON."""
        mock_client.send.return_value = make_response(201, PLUGIN_BODY)

        reconciler.create(
            plugin_data(config_json='{"minute": 20}', tags=["team-a"], service="svc-123")
        )

        _, _, kwargs = _sent(mock_client)
        assert kwargs == {
            "json": {
                "name": "rate-limiting",
                "config": {"minute": 20},
                "protocols": ["http", "https"],
                "tags": ["team-a"],
                "enabled": True,
            }
        }

    @pytest.mark.unit
    def test_json_body_never_carries_scope(self, plugin_data: MakeData) -> None:
        """Scope fields must not be serialized into the JSON body."""
        data = plugin_data(config_json="{}", route="rt-1")
        reconciler = PluginReconciler(MagicMock())

        body = reconciler.build_request_body(data, PluginReconciler.build_plugin(data))

        assert "route" not in body["json"]
        assert "service" not in body["json"]
        assert "consumer" not in body["json"]

    @pytest.mark.unit
    def test_json_body_includes_id_on_update(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """Update bodies should carry the known plugin id."""
        mock_client.send.return_value = make_response(200, PLUGIN_BODY)

        reconciler.update(plugin_data(resource_id="plg-1", config_json='{"minute": 5}'))

        _, _, kwargs = _sent(mock_client)
        assert kwargs["json"]["id"] == "plg-1"
        assert kwargs["json"]["config"] == {"minute": 5}

    @pytest.mark.unit
    def test_no_config_sends_form_encoded_name_only(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """Without config_json only the name is sent, form-urlencoded."""
        mock_client.send.return_value = make_response(201, PLUGIN_BODY)

        reconciler.create(plugin_data(tags=["team-a"], enabled=False, consumer="c-1"))

        _, _, kwargs = _sent(mock_client)
        assert kwargs == {"data": {"name": "rate-limiting"}}

    @pytest.mark.unit
    def test_empty_config_json_uses_form_path(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """An empty config_json string counts as not supplied."""
        mock_client.send.return_value = make_response(201, PLUGIN_BODY)

        reconciler.create(plugin_data(config_json=""))

        _, _, kwargs = _sent(mock_client)
        assert kwargs == {"data": {"name": "rate-limiting"}}

    @pytest.mark.unit
    def test_malformed_config_json_rejected_before_request(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        plugin_data: MakeData,
    ) -> None:
        """Malformed config_json should raise a validation error and send nothing."""
        with pytest.raises(KongPluginValidationError) as exc_info:
            reconciler.create(plugin_data(config_json="{not valid}"))

        assert "config_json" in exc_info.value.message
        mock_client.send.assert_not_called()

    @pytest.mark.unit
    def test_non_object_config_json_rejected(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        plugin_data: MakeData,
    ) -> None:
        """config_json must decode to an object."""
        with pytest.raises(KongPluginValidationError):
            reconciler.update(plugin_data(resource_id="plg-1", config_json="[1, 2]"))

        mock_client.send.assert_not_called()


class TestCreate:
    """Tests for PluginReconciler.create."""

    @pytest.mark.unit
    def test_create_populates_state(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A 201 should write Kong's view into the state."""
        mock_client.send.return_value = make_response(201, PLUGIN_BODY)
        data = plugin_data(config_json='{"minute": 20}')

        reconciler.create(data)

        assert data.id == "plg-1"
        assert data.get("tags") == ["team-a"]
        assert data.get("enabled") is True

    @pytest.mark.unit
    def test_create_conflict_raises_import_hint(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A 409 should raise the conflict error, not the generic one."""
        mock_client.send.return_value = make_response(
            409, {"message": "unique constraint violation"}, "Conflict"
        )

        with pytest.raises(KongPluginConflictError) as exc_info:
            reconciler.create(plugin_data())

        assert not isinstance(exc_info.value, KongUnexpectedStatusError)
        assert "import" in exc_info.value.message
        assert exc_info.value.status_code == 409

    @pytest.mark.unit
    def test_create_ok_instead_of_created_is_unexpected(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """Only 201 counts as a successful create."""
        mock_client.send.return_value = make_response(200, PLUGIN_BODY, "OK")
        data = plugin_data()

        with pytest.raises(KongUnexpectedStatusError) as exc_info:
            reconciler.create(data)

        assert exc_info.value.status == "200 OK"
        assert data.id == ""

    @pytest.mark.unit
    def test_create_server_error_carries_status_text(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """Unexpected statuses should carry the raw status text."""
        mock_client.send.return_value = make_response(500, {}, "Internal Server Error")

        with pytest.raises(KongUnexpectedStatusError) as exc_info:
            reconciler.create(plugin_data())

        assert "500 Internal Server Error" in str(exc_info.value)

    @pytest.mark.unit
    def test_create_transport_failure(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        plugin_data: MakeData,
    ) -> None:
        """Transport failures surface as creation failures with the cause."""
        cause = OSError("connection refused")
        mock_client.send.side_effect = KongConnectionError(
            message="Failed to connect to Kong: connection refused",
            endpoint="/plugins/",
            original_error=cause,
        )

        with pytest.raises(KongConnectionError) as exc_info:
            reconciler.create(plugin_data())

        assert exc_info.value.message.startswith("error while creating plugin:")
        assert "connection refused" in exc_info.value.message
        assert exc_info.value.original_error is cause

    @pytest.mark.unit
    def test_create_rejects_conflicting_scopes(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        plugin_data: MakeData,
    ) -> None:
        """Two scopes at once should be rejected without contacting Kong."""
        with pytest.raises(KongPluginValidationError) as exc_info:
            reconciler.create(plugin_data(service="svc-1", route="rt-1"))

        assert exc_info.value.errors == [
            "only one of service, route or consumer may be set, got service, route"
        ]
        mock_client.send.assert_not_called()

    @pytest.mark.unit
    def test_create_requires_name_and_protocols(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        plugin_data: MakeData,
    ) -> None:
        """Required keys must be declared."""
        with pytest.raises(KongPluginValidationError) as exc_info:
            reconciler.create(plugin_data(name="", protocols=[]))

        assert exc_info.value.errors == ["name: required", "protocols: required"]
        mock_client.send.assert_not_called()

    @pytest.mark.unit
    def test_create_undecodable_body(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A success body that is not a plugin raises an API error."""
        mock_client.send.return_value = make_response(201, {"protocols": "http"})

        with pytest.raises(KongAPIError) as exc_info:
            reconciler.create(plugin_data())

        assert "decoding" in exc_info.value.message


class TestRead:
    """Tests for PluginReconciler.read."""

    @pytest.mark.unit
    def test_read_fetches_by_id_without_prefix(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """read should GET plugins/<id> even for scoped plugins."""
        mock_client.send.return_value = make_response(200, PLUGIN_BODY)

        reconciler.read(plugin_data(resource_id="plg-1", service="svc-123"))

        assert mock_client.send.call_args.args == ("GET", "plugins/plg-1")

    @pytest.mark.unit
    def test_read_not_found_clears_id(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A 404 is a successful read that marks the plugin as gone."""
        mock_client.send.return_value = make_response(404, {"message": "Not found"}, "Not Found")
        data = plugin_data(resource_id="plg-1")

        reconciler.read(data)

        assert data.id == ""

    @pytest.mark.unit
    def test_read_unexpected_status(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """Statuses other than 200/404 raise."""
        mock_client.send.return_value = make_response(503, {}, "Service Unavailable")
        data = plugin_data(resource_id="plg-1")

        with pytest.raises(KongUnexpectedStatusError):
            reconciler.read(data)

        assert data.id == "plg-1"

    @pytest.mark.unit
    def test_read_takes_scope_from_response_when_undeclared(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
    ) -> None:
        """An imported plugin learns its scope from Kong's response."""
        mock_client.send.return_value = make_response(
            200, {**PLUGIN_BODY, "route": {"id": "rt-9"}}
        )
        data = reconciler.import_state("plg-1")

        reconciler.read(data)

        assert data.get("route") == "rt-9"
        assert data.get("service") == ""
        assert data.get("consumer") == ""
        assert data.get("name") == "rate-limiting"

    @pytest.mark.unit
    def test_read_declared_scope_wins_over_response(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A declared scope takes precedence over the echoed one."""
        mock_client.send.return_value = make_response(
            200, {**PLUGIN_BODY, "service": {"id": "other-svc"}}
        )
        data = plugin_data(resource_id="plg-1", service="svc-123")

        reconciler.read(data)

        assert data.get("service") == "svc-123"

    @pytest.mark.unit
    def test_read_transport_failure(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        plugin_data: MakeData,
    ) -> None:
        """Transport failures on read are errors."""
        mock_client.send.side_effect = KongConnectionError("Kong request timed out")

        with pytest.raises(KongConnectionError, match="error while reading plugin"):
            reconciler.read(plugin_data(resource_id="plg-1"))

    @pytest.mark.unit
    def test_read_without_id_rejected(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        plugin_data: MakeData,
    ) -> None:
        """read needs an id."""
        with pytest.raises(KongPluginValidationError):
            reconciler.read(plugin_data())

        mock_client.send.assert_not_called()


class TestUpdate:
    """Tests for PluginReconciler.update."""

    @pytest.mark.unit
    def test_update_patches_by_id_for_scoped_plugin(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """update should PATCH plugins/<id> without the scope prefix."""
        mock_client.send.return_value = make_response(200, PLUGIN_BODY)

        reconciler.update(plugin_data(resource_id="plg-1", consumer="c-7"))

        method, endpoint, _ = _sent(mock_client)
        assert method == "PATCH"
        assert endpoint == "plugins/plg-1"

    @pytest.mark.unit
    def test_update_after_scope_change_keeps_path(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A newly declared scope does not change the PATCH path."""
        mock_client.send.return_value = make_response(
            200, {**PLUGIN_BODY, "service": {"id": "svc-A"}}
        )
        data = plugin_data(resource_id="plg-1", service="svc-B")

        reconciler.update(data)

        _, endpoint, _ = _sent(mock_client)
        assert endpoint == "plugins/plg-1"
        assert data.get("service") == "svc-B"

    @pytest.mark.unit
    def test_update_global(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A global plugin is patched at plugins/<id>."""
        mock_client.send.return_value = make_response(200, PLUGIN_BODY)

        reconciler.update(plugin_data(resource_id="plg-1"))

        _, endpoint, _ = _sent(mock_client)
        assert endpoint == "plugins/plg-1"

    @pytest.mark.unit
    def test_update_writes_back_state(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A 200 should refresh the state from the response."""
        mock_client.send.return_value = make_response(
            200, {**PLUGIN_BODY, "enabled": False, "tags": ["team-b"]}
        )
        data = plugin_data(resource_id="plg-1", enabled=False, tags=["team-b"])

        reconciler.update(data)

        assert data.get("enabled") is False
        assert data.get("tags") == ["team-b"]

    @pytest.mark.unit
    @pytest.mark.parametrize("status", [201, 204, 404, 409])
    def test_update_non_ok_is_unexpected(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
        status: int,
    ) -> None:
        """Only 200 counts as a successful update."""
        mock_client.send.return_value = make_response(status)

        with pytest.raises(KongUnexpectedStatusError):
            reconciler.update(plugin_data(resource_id="plg-1"))


class TestDelete:
    """Tests for PluginReconciler.delete."""

    @pytest.mark.unit
    def test_delete_no_content_succeeds(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """A 204 is the only successful delete."""
        mock_client.send.return_value = make_response(204)

        reconciler.delete(plugin_data(resource_id="plg-1", service="svc-123"))

        assert mock_client.send.call_args.args == ("DELETE", "plugins/plg-1")

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("status", "reason"),
        [(200, "OK"), (404, "Not Found"), (500, "Internal Server Error")],
    )
    def test_delete_other_status_is_unexpected(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
        status: int,
        reason: str,
    ) -> None:
        """Any status other than 204 is an unexpected-status error."""
        mock_client.send.return_value = make_response(status, {}, reason)

        with pytest.raises(KongUnexpectedStatusError) as exc_info:
            reconciler.delete(plugin_data(resource_id="plg-1"))

        assert exc_info.value.status == f"{status} {reason}"


class TestImport:
    """Tests for import passthrough."""

    @pytest.mark.unit
    def test_import_uses_id_verbatim(self, reconciler: PluginReconciler) -> None:
        """The imported id is not transformed."""
        data = reconciler.import_state("  Mixed-Case/ID  ")

        assert data.id == "  Mixed-Case/ID  "
        assert data.get("name") == ""


class TestRoundTrip:
    """End-to-end create then read of a service-scoped plugin."""

    @pytest.mark.unit
    def test_create_then_read_reproduces_declaration(
        self,
        reconciler: PluginReconciler,
        mock_client: MagicMock,
        make_response: MakeResponse,
        plugin_data: MakeData,
    ) -> None:
        """Fields survive a round trip; the scope falls back to the declaration."""
        body = {**PLUGIN_BODY, "id": "plg-42"}
        mock_client.send.side_effect = [make_response(201, body), make_response(200, body)]
        data = plugin_data(
            config_json='{"minute": 20}',
            tags=["team-a"],
            enabled=True,
            service="svc-123",
        )

        reconciler.create(data)
        reconciler.read(data)

        assert data.id == "plg-42"
        assert data.get("name") == "rate-limiting"
        assert data.get("protocols") == ["http", "https"]
        assert data.get("tags") == ["team-a"]
        assert data.get("enabled") is True
        assert data.get("service") == "svc-123"
        assert data.get("route") == ""
        assert data.get("consumer") == ""
        first_call = mock_client.send.call_args_list[0]
        assert first_call.args == ("POST", "services/svc-123/plugins/")
        assert first_call.kwargs["json"]["config"] == {"minute": 20}
