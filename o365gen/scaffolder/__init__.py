"""o365gen scaffolder -- writes the Office 365 web application files.

This package takes a ``ResolvedConfig`` and a destination directory, merges
the required npm/bower packages into any existing manifests, and renders the
application skeleton.

Quick usage::

    from o365gen.config import GeneratorOptions, resolve_config
    from o365gen.scaffolder import ProjectGenerator

    config = resolve_config(GeneratorOptions(name="My Project", root_path="src"))
    result = await ProjectGenerator().generate("/tmp/output", config)
"""

from o365gen.scaffolder.generator import GenerationResult, ProjectGenerator
from o365gen.scaffolder.manifests import MalformedManifestError, ManifestUpserter
from o365gen.scaffolder.materializer import TemplateMaterializer
from o365gen.scaffolder.templates import TemplateRenderer

__all__ = [
    "GenerationResult",
    "MalformedManifestError",
    "ManifestUpserter",
    "ProjectGenerator",
    "TemplateMaterializer",
    "TemplateRenderer",
]
