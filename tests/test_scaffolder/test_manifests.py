"""Tests for the manifest create-or-merge engine.

Covers:
- load_manifest on missing, valid and malformed documents
- merge_dependencies first-writer-wins semantics
- ManifestUpserter.upsert create and merge paths for both manifests
- Name capture from an existing package.json
- Malformed files are left untouched
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from o365gen.config import ResolvedConfig
from o365gen.scaffolder.manifests import (
    LIBRARY_MANIFEST,
    LIBRARY_REQUIRED_DEPENDENCIES,
    PACKAGE_MANIFEST,
    PACKAGE_REQUIRED_DEPENDENCIES,
    MalformedManifestError,
    ManifestUpserter,
    UpsertAction,
    load_manifest,
    merge_dependencies,
)
from o365gen.scaffolder.templates import TemplateRenderer


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def upserter(renderer: TemplateRenderer) -> ManifestUpserter:
    return ManifestUpserter(renderer)


# ---------------------------------------------------------------------------
# Required sets
# ---------------------------------------------------------------------------


class TestRequiredSets:
    def test_package_requirements(self):
        assert PACKAGE_REQUIRED_DEPENDENCIES == {
            "gulp": "^3.9.0",
            "gulp-webserver": "^0.9.1",
        }

    def test_library_requirements(self):
        assert set(LIBRARY_REQUIRED_DEPENDENCIES) == {
            "jquery",
            "angular",
            "angular-route",
            "angular-sanitize",
            "adal-angular",
        }

    def test_kinds(self):
        assert PACKAGE_MANIFEST.section == "devDependencies"
        assert PACKAGE_MANIFEST.captures_name is True
        assert LIBRARY_MANIFEST.section == "dependencies"
        assert LIBRARY_MANIFEST.captures_name is False


# ---------------------------------------------------------------------------
# merge_dependencies
# ---------------------------------------------------------------------------


class TestMergeDependencies:
    def test_inserts_missing(self):
        merged, added = merge_dependencies({}, {"a": "1", "b": "2"})
        assert merged == {"a": "1", "b": "2"}
        assert added == ["a", "b"]

    def test_existing_constraint_wins(self):
        merged, added = merge_dependencies({"a": "0.1"}, {"a": "1", "b": "2"})
        assert merged == {"a": "0.1", "b": "2"}
        assert added == ["b"]

    def test_unrelated_entries_kept(self):
        merged, _ = merge_dependencies({"x": "1.0.0"}, {"a": "1"})
        assert merged["x"] == "1.0.0"

    def test_does_not_mutate_input(self):
        existing = {"x": "1"}
        merge_dependencies(existing, {"a": "1"})
        assert existing == {"x": "1"}

    def test_idempotent(self):
        once, _ = merge_dependencies({"x": "1"}, {"a": "1"})
        twice, added = merge_dependencies(once, {"a": "1"})
        assert twice == once
        assert added == []


# ---------------------------------------------------------------------------
# load_manifest
# ---------------------------------------------------------------------------


class TestLoadManifest:
    def test_missing(self, destination: Path):
        document = load_manifest(destination / "package.json", PACKAGE_MANIFEST)
        assert document.exists is False
        assert document.declared_name is None

    def test_reads_name_and_section(self, destination: Path, write_json):
        path = write_json(
            "package.json", {"name": "legacy", "devDependencies": {"gulp": "^4.0.0"}}
        )
        document = load_manifest(path, PACKAGE_MANIFEST)
        assert document.exists is True
        assert document.declared_name == "legacy"
        assert document.dependencies == {"gulp": "^4.0.0"}

    def test_missing_section_is_empty(self, write_json):
        path = write_json("bower.json", {"name": "x"})
        assert load_manifest(path, LIBRARY_MANIFEST).dependencies == {}

    def test_null_section_is_empty(self, write_json):
        path = write_json("bower.json", {"dependencies": None})
        assert load_manifest(path, LIBRARY_MANIFEST).dependencies == {}

    def test_blank_name_is_ignored(self, write_json):
        path = write_json("package.json", {"name": "  "})
        assert load_manifest(path, PACKAGE_MANIFEST).declared_name is None

    def test_non_string_name_is_ignored(self, write_json):
        path = write_json("package.json", {"name": 42})
        assert load_manifest(path, PACKAGE_MANIFEST).declared_name is None

    def test_invalid_json(self, destination: Path):
        path = destination / "package.json"
        path.write_text("{ this is not json", encoding="utf-8")
        with pytest.raises(MalformedManifestError) as exc_info:
            load_manifest(path, PACKAGE_MANIFEST)
        assert exc_info.value.path == path

    def test_non_object_document(self, write_json):
        path = write_json("bower.json", ["jquery"])
        with pytest.raises(MalformedManifestError):
            load_manifest(path, LIBRARY_MANIFEST)

    def test_non_object_section(self, write_json):
        path = write_json("bower.json", {"dependencies": ["jquery"]})
        with pytest.raises(MalformedManifestError, match="dependencies"):
            load_manifest(path, LIBRARY_MANIFEST)


# ---------------------------------------------------------------------------
# ManifestUpserter: create
# ---------------------------------------------------------------------------


class TestUpsertCreate:
    async def test_creates_package_json(self, upserter, destination, config, read_json):
        result = await upserter.upsert(PACKAGE_MANIFEST, destination, config)

        assert result.action is UpsertAction.CREATED
        assert result.path == destination / "package.json"
        assert result.declared_name is None
        data = read_json("package.json")
        assert data["name"] == "my-project"
        assert data["devDependencies"] == PACKAGE_REQUIRED_DEPENDENCIES

    async def test_creates_bower_json(self, upserter, destination, config, read_json):
        result = await upserter.upsert(LIBRARY_MANIFEST, destination, config)

        assert result.action is UpsertAction.CREATED
        assert sorted(result.added) == sorted(LIBRARY_REQUIRED_DEPENDENCIES)
        data = read_json("bower.json")
        assert data["name"] == "my-project"
        assert data["dependencies"] == LIBRARY_REQUIRED_DEPENDENCIES

    async def test_bower_uses_root_project_name(
        self, upserter, destination, config: ResolvedConfig, read_json
    ):
        await upserter.upsert(
            LIBRARY_MANIFEST, destination, config.with_root_project_name("legacy-proj")
        )
        assert read_json("bower.json")["name"] == "legacy-proj"


# ---------------------------------------------------------------------------
# ManifestUpserter: merge
# ---------------------------------------------------------------------------


class TestUpsertMerge:
    async def test_merge_is_non_destructive(
        self, upserter, destination, config, write_json, read_json
    ):
        write_json(
            "bower.json",
            {
                "name": "existing",
                "dependencies": {"lodash": "1.0.0", "angular": "2.0.0"},
            },
        )

        result = await upserter.upsert(LIBRARY_MANIFEST, destination, config)

        assert result.action is UpsertAction.MERGED
        deps = read_json("bower.json")["dependencies"]
        assert deps["lodash"] == "1.0.0"
        assert deps["angular"] == "2.0.0"
        for name, constraint in LIBRARY_REQUIRED_DEPENDENCIES.items():
            if name != "angular":
                assert deps[name] == constraint
        assert "angular" not in result.added
        assert set(result.added) == set(LIBRARY_REQUIRED_DEPENDENCIES) - {"angular"}

    async def test_merge_keeps_unrelated_top_level_keys(
        self, upserter, destination, config, write_json, read_json
    ):
        write_json(
            "package.json",
            {
                "name": "legacy-proj",
                "version": "3.2.1",
                "scripts": {"test": "karma start"},
                "dependencies": {"express": "^4.0.0"},
            },
        )

        await upserter.upsert(PACKAGE_MANIFEST, destination, config)

        data = read_json("package.json")
        assert data["name"] == "legacy-proj"
        assert data["version"] == "3.2.1"
        assert data["scripts"] == {"test": "karma start"}
        assert data["dependencies"] == {"express": "^4.0.0"}
        assert data["devDependencies"] == PACKAGE_REQUIRED_DEPENDENCIES

    async def test_merge_preserves_key_order(
        self, upserter, destination, config, write_json
    ):
        write_json(
            "package.json",
            {"name": "x", "devDependencies": {"karma": "1"}, "license": "MIT"},
        )
        await upserter.upsert(PACKAGE_MANIFEST, destination, config)

        keys = list(json.loads((destination / "package.json").read_text()).keys())
        assert keys == ["name", "devDependencies", "license"]

    async def test_package_merge_captures_declared_name(
        self, upserter, destination, config, write_json
    ):
        write_json("package.json", {"name": "legacy-proj"})
        result = await upserter.upsert(PACKAGE_MANIFEST, destination, config)
        assert result.declared_name == "legacy-proj"

    async def test_package_without_name_has_no_declared_name(
        self, upserter, destination, config, write_json
    ):
        write_json("package.json", {"devDependencies": {}})
        result = await upserter.upsert(PACKAGE_MANIFEST, destination, config)
        assert result.declared_name is None

    async def test_library_merge_never_reports_name(
        self, upserter, destination, config, write_json
    ):
        write_json("bower.json", {"name": "bower-name", "dependencies": {}})
        result = await upserter.upsert(LIBRARY_MANIFEST, destination, config)
        assert result.declared_name is None
        assert json.loads((destination / "bower.json").read_text())["name"] == "bower-name"

    async def test_second_upsert_is_idempotent(
        self, upserter, destination, config, read_json
    ):
        await upserter.upsert(PACKAGE_MANIFEST, destination, config)
        first = read_json("package.json")

        result = await upserter.upsert(PACKAGE_MANIFEST, destination, config)

        assert result.action is UpsertAction.MERGED
        assert result.added == []
        assert read_json("package.json") == first

    async def test_malformed_file_untouched(self, upserter, destination, config):
        path = destination / "package.json"
        original = "{ \"name\": \"broken\", "
        path.write_text(original, encoding="utf-8")

        with pytest.raises(MalformedManifestError):
            await upserter.upsert(PACKAGE_MANIFEST, destination, config)

        assert path.read_text(encoding="utf-8") == original

    async def test_existing_manifest_is_read_off_the_event_loop(
        self, upserter, destination, config, write_json
    ):
        write_json("package.json", {"name": "legacy-proj"})
        with patch(
            "o365gen.scaffolder.manifests.asyncio.to_thread", wraps=asyncio.to_thread
        ) as to_thread:
            await upserter.upsert(PACKAGE_MANIFEST, destination, config)

        assert to_thread.call_args_list[0].args[:3] == (
            load_manifest,
            destination / "package.json",
            PACKAGE_MANIFEST,
        )
