"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from samantha.host.local import LocalWorkspaceHost
from samantha.services.settings import Settings

from helpers import FakePanel, FakeSearchProvider


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def host(workspace: Path) -> LocalWorkspaceHost:
    return LocalWorkspaceHost(workspace)


@pytest.fixture
def panel() -> FakePanel:
    return FakePanel()


@pytest.fixture
def search_provider() -> FakeSearchProvider:
    return FakeSearchProvider()


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key", max_turns=5, command_timeout=30.0)
