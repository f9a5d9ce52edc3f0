"""Copies and renders the static and templated project files.

Every generated file is described by a :class:`FileSpec` in the fixed
``APP_FILES`` manifest.  Infrastructure files are anchored at the destination
root; application files are placed under the configured root path.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from o365gen.config import ResolvedConfig

from .templates import TemplateRenderer


class RenderMode(str, Enum):
    VERBATIM = "verbatim"
    RENDERED = "rendered"


class Anchor(str, Enum):
    ROOT = "root"
    APP = "app"


@dataclass(frozen=True)
class FileSpec:
    """One generated file: its template, target and how it is produced."""

    template: str
    target: str
    mode: RenderMode = RenderMode.VERBATIM
    anchor: Anchor = Anchor.APP


_STYLESHEETS = (
    "Office.css",
    "fabric.css",
    "fabric.min.css",
    "fabric.rtl.css",
    "fabric.rtl.min.css",
    "fabric.components.css",
    "fabric.components.min.css",
    "fabric.components.rtl.css",
    "fabric.components.rtl.min.css",
)

APP_FILES: tuple[FileSpec, ...] = (
    # Infrastructure (destination root)
    FileSpec("_bowerrc", ".bowerrc", anchor=Anchor.ROOT),
    FileSpec("gulpfile.js", "gulpfile.js", anchor=Anchor.ROOT),
    FileSpec("_tsd.json", "tsd.json", anchor=Anchor.ROOT),
    FileSpec("_jsconfig.json", "jsconfig.json", anchor=Anchor.ROOT),
    # Static assets
    *(FileSpec(f"content/{name}", f"content/{name}") for name in _STYLESHEETS),
    FileSpec("images/close.png", "images/close.png"),
    FileSpec("scripts/jquery.fabric.js", "scripts/jquery.fabric.js"),
    FileSpec("scripts/jquery.fabric.min.js", "scripts/jquery.fabric.min.js"),
    # Application
    FileSpec("index.html", "index.html"),
    FileSpec("app/app.adalconfig.js", "app/app.adalconfig.js"),
    FileSpec("app/app.config.js.j2", "app/app.config.js", mode=RenderMode.RENDERED),
    FileSpec("app/app.module.js", "app/app.module.js"),
    FileSpec("app/app.routes.js", "app/app.routes.js"),
    FileSpec("app/home/home.controller.js", "app/home/home.controller.js"),
    FileSpec("app/home/home.html", "app/home/home.html"),
    FileSpec("app/services/data.service.js", "app/services/data.service.js"),
)


def target_path(destination_root: Path, root_path: str, spec: FileSpec) -> Path:
    """Return where *spec* is written for the given root path."""
    relative = PurePosixPath(spec.target)
    if spec.anchor is Anchor.APP and root_path:
        relative = PurePosixPath(root_path) / relative
    return Path(destination_root).joinpath(*relative.parts)


class TemplateMaterializer:
    """Writes the ``APP_FILES`` payload into a destination directory."""

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    async def materialize(
        self,
        destination_root: Path,
        config: ResolvedConfig,
        files: tuple[FileSpec, ...] = APP_FILES,
    ) -> list[Path]:
        """Copy or render every file in *files*.

        ``config`` must already carry the final ``root_project_name``.  A
        failing write propagates as ``OSError``; files written before the
        failure are left in place.

        Returns:
            The written paths, in manifest order.
        """
        context = config.template_context()
        written: list[Path] = []
        for spec in files:
            out = target_path(destination_root, config.root_path, spec)
            if spec.mode is RenderMode.RENDERED:
                path = await self.renderer.render_to_file(spec.template, out, context)
            else:
                path = await self.renderer.copy_to_file(spec.template, out)
            written.append(path)
        return written
