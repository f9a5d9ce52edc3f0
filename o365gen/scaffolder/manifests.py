"""Create-or-merge handling for the dependency manifests.

The generator needs a handful of npm and bower packages.  When the destination
already has a ``package.json`` or ``bower.json`` the required entries are
merged into the existing document instead of replacing it:

* missing dependencies are inserted with the default version constraint;
* dependencies that are already declared keep their constraint;
* nothing else in the document is touched.

A document that cannot be parsed as a JSON object is reported as
:class:`MalformedManifestError` and left exactly as it was found.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from o365gen.config import ResolvedConfig
from o365gen.utils import load_json, print_warning, save_json

from .templates import TemplateRenderer


# ---------------------------------------------------------------------------
# Required dependency sets
# ---------------------------------------------------------------------------

PACKAGE_REQUIRED_DEPENDENCIES: dict[str, str] = {
    "gulp": "^3.9.0",
    "gulp-webserver": "^0.9.1",
}

LIBRARY_REQUIRED_DEPENDENCIES: dict[str, str] = {
    "jquery": "~1.9.1",
    "angular": "~1.4.4",
    "angular-route": "~1.4.4",
    "angular-sanitize": "~1.4.4",
    "adal-angular": "~1.0.5",
}


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class MalformedManifestError(ValueError):
    """Raised when an existing manifest is not a well-formed JSON object."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class UpsertAction(str, Enum):
    CREATED = "created"
    MERGED = "merged"


@dataclass(frozen=True)
class ManifestKind:
    """Describes one manifest artifact and the entries it must contain."""

    filename: str
    template: str
    section: str
    required: Mapping[str, str]
    captures_name: bool = False


PACKAGE_MANIFEST = ManifestKind(
    filename="package.json",
    template="_package.json.j2",
    section="devDependencies",
    required=PACKAGE_REQUIRED_DEPENDENCIES,
    captures_name=True,
)

LIBRARY_MANIFEST = ManifestKind(
    filename="bower.json",
    template="_bower.json.j2",
    section="dependencies",
    required=LIBRARY_REQUIRED_DEPENDENCIES,
)


@dataclass
class ManifestDocument:
    """A manifest as found at the destination before the upsert."""

    exists: bool
    declared_name: str | None = None
    dependencies: dict[str, str] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class UpsertResult:
    """Outcome of a single manifest upsert."""

    action: UpsertAction
    path: Path
    added: list[str] = field(default_factory=list)
    declared_name: str | None = None


# ---------------------------------------------------------------------------
# Loading and merging
# ---------------------------------------------------------------------------


def load_manifest(path: Path, kind: ManifestKind) -> ManifestDocument:
    """Read the manifest at *path*, if any.

    Raises:
        MalformedManifestError: The file exists but is not a JSON object, or
            its dependency section is not an object.
    """
    if not path.exists():
        return ManifestDocument(exists=False)

    try:
        data = load_json(path)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedManifestError(path, f"invalid JSON ({exc})") from exc

    if not isinstance(data, dict):
        raise MalformedManifestError(path, "top-level value is not an object")

    section = data.get(kind.section, {})
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise MalformedManifestError(path, f"'{kind.section}' is not an object")

    name = data.get("name")
    declared_name = name if isinstance(name, str) and name.strip() else None

    return ManifestDocument(
        exists=True,
        declared_name=declared_name,
        dependencies=dict(section),
        data=data,
    )


def merge_dependencies(
    existing: Mapping[str, str], required: Mapping[str, str]
) -> tuple[dict[str, str], list[str]]:
    """Add every missing *required* entry to *existing*.

    Existing entries win: their constraints are never changed and no entry is
    removed.  Returns the merged mapping and the names that were inserted.
    """
    merged = dict(existing)
    added: list[str] = []
    for name, constraint in required.items():
        if name not in merged:
            merged[name] = constraint
            added.append(name)
    return merged, added


# ---------------------------------------------------------------------------
# ManifestUpserter
# ---------------------------------------------------------------------------


class ManifestUpserter:
    """Creates a manifest from its template, or merges into an existing one."""

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    async def upsert(
        self,
        kind: ManifestKind,
        destination_root: Path,
        config: ResolvedConfig,
    ) -> UpsertResult:
        """Ensure the *kind* manifest under *destination_root* is complete.

        Args:
            kind: Which manifest to handle.
            destination_root: Directory the manifest lives in.
            config: The run configuration; used to render a fresh manifest.

        Returns:
            An ``UpsertResult`` saying whether the file was created or merged.
            For the package manifest ``declared_name`` carries the name found
            in an existing file, which must then replace
            ``config.root_project_name``.
        """
        path = Path(destination_root) / kind.filename
        document = await asyncio.to_thread(load_manifest, path, kind)

        if not document.exists:
            await self.renderer.render_to_file(
                kind.template, path, config.template_context()
            )
            return UpsertResult(
                action=UpsertAction.CREATED,
                path=path,
                added=list(kind.required),
            )

        merged, added = merge_dependencies(document.dependencies, kind.required)
        data = dict(document.data)
        data[kind.section] = merged

        print_warning(f"Adding additional packages to {kind.filename}")
        await save_json(data, path)

        return UpsertResult(
            action=UpsertAction.MERGED,
            path=path,
            added=added,
            declared_name=document.declared_name if kind.captures_name else None,
        )
