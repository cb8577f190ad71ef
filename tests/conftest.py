"""Shared pytest fixtures for kong_plugin_reconciler tests."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from kong_plugin_reconciler.integrations.kong.client import KongAdminClient, KongResponse
from kong_plugin_reconciler.resources.schema import PLUGIN_SCHEMA
from kong_plugin_reconciler.resources.state import ResourceData


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear KONG_PLUGIN_ environment variables for each test."""
    for key in list(os.environ.keys()):
        if key.startswith("KONG_PLUGIN_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def mock_client() -> MagicMock:
    """Create a mock Kong Admin client."""
    client = MagicMock(spec=KongAdminClient)
    client.__enter__.return_value = client
    return client


@pytest.fixture
def make_response() -> Callable[..., KongResponse]:
    """Build KongResponse objects for mocked client calls."""

    def _make(
        status_code: int,
        body: dict[str, Any] | None = None,
        reason_phrase: str = "",
    ) -> KongResponse:
        return KongResponse(status_code=status_code, reason_phrase=reason_phrase, body=body or {})

    return _make


@pytest.fixture
def plugin_data() -> Callable[..., ResourceData]:
    """Build plugin ResourceData with sensible defaults."""

    def _make(resource_id: str = "", **values: Any) -> ResourceData:
        declared: dict[str, Any] = {"name": "rate-limiting", "protocols": ["http", "https"]}
        declared.update(values)
        return ResourceData(PLUGIN_SCHEMA, declared, resource_id=resource_id)

    return _make


@pytest.fixture
def declaration_file(temp_dir: Path) -> Callable[[str], Path]:
    """Write a YAML declaration into the temp directory."""

    def _write(content: str, name: str = "plugin.yaml") -> Path:
        path = temp_dir / name
        path.write_text(content)
        return path

    return _write
