"""Shared pytest fixtures for the o365gen test suite.

Provides reusable fixtures for:
- Temporary destination directories
- Resolved configurations
- Pre-existing package.json / bower.json documents
- A mocked install subprocess
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, patch

import pytest

from o365gen.config import GeneratorOptions, ResolvedConfig, Settings, resolve_config
from o365gen.scaffolder.templates import TemplateRenderer


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def destination(tmp_path: Path) -> Path:
    """Empty destination directory for a generation run."""
    dest = tmp_path / "destination"
    dest.mkdir()
    yield dest


@pytest.fixture
def write_json(destination: Path) -> Callable[[str, Any], Path]:
    """Write a JSON document into the destination directory."""

    def _write(filename: str, data: Any) -> Path:
        path = destination / filename
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def read_json(destination: Path) -> Callable[[str], Any]:
    """Read a JSON document from the destination directory."""

    def _read(filename: str) -> Any:
        return json.loads((destination / filename).read_text(encoding="utf-8"))

    return _read


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def config() -> ResolvedConfig:
    """Config for ``My Project!!`` generated under ``src/``."""
    return resolve_config(
        GeneratorOptions(name="My Project!!", root_path="src", skip_install=True)
    )


@pytest.fixture
def root_config() -> ResolvedConfig:
    """Config generating straight into the destination root."""
    return resolve_config(GeneratorOptions(name="Contoso Portal", root_path=""))


@pytest.fixture
def settings() -> Settings:
    """Non-interactive settings with a harmless install command."""
    return Settings(interactive=False, install_command=["npm", "install"])


@pytest.fixture
def renderer() -> TemplateRenderer:
    """Renderer over the packaged templates."""
    return TemplateRenderer()


# ---------------------------------------------------------------------------
# Mock install
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_install():
    """Patch ``run_command`` as used by the pipeline's install step.

    Usage:
        def test_install(mock_install):
            with mock_install as run:
                run.return_value = (0, "", "")
                ...
    """
    return patch(
        "o365gen.pipeline.run_command",
        new=AsyncMock(return_value=(0, "", "")),
    )
