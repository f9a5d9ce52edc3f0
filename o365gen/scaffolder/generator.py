"""Main scaffolding flow.

Takes a ``ResolvedConfig`` and a destination directory and produces the Office
365 web application: the npm and bower manifests are created or merged first,
then the static and templated application files are written.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

from o365gen.config import ResolvedConfig

from .manifests import LIBRARY_MANIFEST, PACKAGE_MANIFEST, ManifestUpserter, UpsertResult
from .materializer import APP_FILES, FileSpec, TemplateMaterializer
from .templates import TemplateRenderer


@dataclass
class GenerationResult:
    """Everything a generation run produced."""

    config: ResolvedConfig
    manifests: dict[str, UpsertResult] = field(default_factory=dict)
    files: list[Path] = field(default_factory=list)


class ProjectGenerator:
    """Scaffolding orchestrator for a single destination directory.

    Given a ``ResolvedConfig``, generates:
    - ``package.json`` and ``bower.json`` (created, or merged when present)
    - ``.bowerrc``, ``gulpfile.js``, ``tsd.json``, ``jsconfig.json``
    - Fabric stylesheets, images and scripts under the root path
    - The AngularJS + ADAL application skeleton under the root path
    """

    def __init__(
        self,
        renderer: TemplateRenderer | None = None,
        files: tuple[FileSpec, ...] = APP_FILES,
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.upserter = ManifestUpserter(self.renderer)
        self.materializer = TemplateMaterializer(self.renderer)
        self.files = files

    # -- Public API --------------------------------------------------------

    async def upsert_manifests(
        self, destination: str | Path, config: ResolvedConfig
    ) -> tuple[ResolvedConfig, dict[str, UpsertResult]]:
        """Create or merge ``package.json`` then ``bower.json``.

        The package manifest goes first: a name declared in an existing
        ``package.json`` becomes the ``root_project_name`` used for
        ``bower.json`` and every later file.

        Returns:
            The (possibly corrected) config and the per-file upsert results.
        """
        root = Path(destination)
        await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)

        package = await self.upserter.upsert(PACKAGE_MANIFEST, root, config)
        if package.declared_name:
            config = config.with_root_project_name(package.declared_name)

        library = await self.upserter.upsert(LIBRARY_MANIFEST, root, config)

        return config, {
            PACKAGE_MANIFEST.filename: package,
            LIBRARY_MANIFEST.filename: library,
        }

    async def write_files(
        self, destination: str | Path, config: ResolvedConfig
    ) -> list[Path]:
        """Write the infrastructure and application files."""
        return await self.materializer.materialize(Path(destination), config, self.files)

    async def generate(
        self, destination: str | Path, config: ResolvedConfig
    ) -> GenerationResult:
        """Run the manifest upserts and file materialisation in order."""
        config, manifests = await self.upsert_manifests(destination, config)
        files = await self.write_files(destination, config)
        return GenerationResult(config=config, manifests=manifests, files=files)
