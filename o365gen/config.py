"""o365gen configuration.

Two layers of typed configuration, both Pydantic v2 models:

* ``Settings`` -- tool-level knobs (template location, install command,
  interactivity) that can be read from ``O365GEN_*`` environment variables.
* ``ResolvedConfig`` -- the immutable, per-run record built once by
  :func:`resolve_config` from defaults, prompt answers and explicit options,
  and handed to every later stage.
"""

from __future__ import annotations

import os
import re
import shlex
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import sanitize_project_name

DEFAULT_PROJECT_NAME = "My Office Project"
DEFAULT_APP_ID = "00000000-0000-0000-0000-000000000000"
CURRENT_FOLDER = "current folder"

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "scaffolder" / "templates"
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ConfigurationError(ValueError):
    """Raised when user input cannot be turned into a ``ResolvedConfig``."""


class InvalidRootPathError(ConfigurationError):
    """The root path is absolute or escapes the destination directory."""


class EmptyProjectNameError(ConfigurationError):
    """The project name sanitises to an empty string."""


class EmptyNamePolicy(str, Enum):
    """What to do when the sanitised project name is empty."""

    DEFAULT = "default"
    ALLOW = "allow"
    REJECT = "reject"


# ---------------------------------------------------------------------------
# Tool settings
# ---------------------------------------------------------------------------


class Settings(BaseModel):
    """Tool-level settings, independent of any single generation run."""

    template_dir: Path = Field(default=_DEFAULT_TEMPLATE_DIR)
    install_command: list[str] = Field(default_factory=lambda: ["npm", "install"])
    install_timeout: int = Field(default=600, ge=10, description="Install timeout in seconds")
    interactive: bool = Field(default=True, description="Prompt for missing options")
    empty_name_policy: EmptyNamePolicy = Field(default=EmptyNamePolicy.DEFAULT)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            O365GEN_TEMPLATE_DIR, O365GEN_INSTALL_COMMAND,
            O365GEN_INSTALL_TIMEOUT, O365GEN_INTERACTIVE,
            O365GEN_EMPTY_NAME_POLICY.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("O365GEN_TEMPLATE_DIR"):
            kwargs["template_dir"] = Path(os.environ["O365GEN_TEMPLATE_DIR"])
        if os.environ.get("O365GEN_INSTALL_COMMAND"):
            kwargs["install_command"] = shlex.split(os.environ["O365GEN_INSTALL_COMMAND"])
        if os.environ.get("O365GEN_INSTALL_TIMEOUT"):
            kwargs["install_timeout"] = int(os.environ["O365GEN_INSTALL_TIMEOUT"])
        if os.environ.get("O365GEN_INTERACTIVE"):
            kwargs["interactive"] = os.environ["O365GEN_INTERACTIVE"].strip().lower() not in (
                "0",
                "false",
                "no",
                "off",
            )
        if os.environ.get("O365GEN_EMPTY_NAME_POLICY"):
            kwargs["empty_name_policy"] = EmptyNamePolicy(
                os.environ["O365GEN_EMPTY_NAME_POLICY"].strip().lower()
            )
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Per-run options and resolved configuration
# ---------------------------------------------------------------------------


class GeneratorOptions(BaseModel):
    """A partial configuration: explicit CLI/API options or prompt answers.

    ``None`` means "not supplied"; only supplied fields take part in the
    overlay performed by :func:`resolve_config`.
    """

    name: str | None = None
    root_path: str | None = None
    app_id: str | None = None
    skip_install: bool | None = None

    def supplied(self) -> dict[str, Any]:
        """Return only the fields that were actually supplied."""
        return self.model_dump(exclude_none=True)

    def missing(self) -> list[str]:
        """Return the promptable fields that were not supplied."""
        return [field for field in PROMPTED_FIELDS if getattr(self, field) is None]


PROMPTED_FIELDS: tuple[str, ...] = ("name", "root_path", "app_id")

DEFAULTS = GeneratorOptions(
    name=DEFAULT_PROJECT_NAME,
    root_path="",
    app_id=DEFAULT_APP_ID,
    skip_install=False,
)


def normalize_root_path(value: str) -> str:
    """Normalise a user supplied root path to a relative POSIX path.

    ``""`` and the ``"current folder"`` sentinel both mean the destination
    root.  ``.`` segments and repeated separators are dropped and ``..``
    segments are folded away as long as they stay inside the root.

    Raises:
        InvalidRootPathError: For absolute paths or paths escaping the root.
    """
    text = value.strip().replace("\\", "/")
    if text == CURRENT_FOLDER:
        return ""
    if text.startswith("/") or _DRIVE_PREFIX.match(text):
        raise InvalidRootPathError(f"root path must be relative: {value!r}")

    parts: list[str] = []
    for segment in text.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not parts:
                raise InvalidRootPathError(
                    f"root path escapes the destination directory: {value!r}"
                )
            parts.pop()
            continue
        parts.append(segment)
    return "/".join(parts)


class ResolvedConfig(BaseModel):
    """Immutable configuration for one generation run.

    Attributes:
        display_name: Sanitised, human readable project title.
        internal_name: Slug derived from ``display_name``; never contains
            whitespace.
        root_path: Relative path for application files (``""`` is the
            destination root).
        app_id: Azure AD application id, passed through as opaque text.
        skip_install: Suppress the dependency installation step.
        root_project_name: Name used in the manifests.  Equal to
            ``internal_name`` unless an existing ``package.json`` already
            declares a name.
        generated_id: Random identifier stamped into generated files.
        defaulted_fields: Fields that fell back to a default value.
    """

    model_config = ConfigDict(frozen=True)

    display_name: str
    internal_name: str
    root_path: str = ""
    app_id: str = DEFAULT_APP_ID
    skip_install: bool = False
    root_project_name: str
    generated_id: UUID = Field(default_factory=uuid4)
    defaulted_fields: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("internal_name")
    @classmethod
    def _no_whitespace(cls, value: str) -> str:
        if any(ch.isspace() for ch in value):
            raise ValueError("internal_name must not contain whitespace")
        return value

    @field_validator("root_path")
    @classmethod
    def _relative_root_path(cls, value: str) -> str:
        return normalize_root_path(value)

    @field_validator("app_id")
    @classmethod
    def _non_empty_app_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("app_id must not be empty")
        return value.strip()

    def with_root_project_name(self, name: str) -> "ResolvedConfig":
        """Return a copy whose ``root_project_name`` is *name*."""
        return self.model_copy(update={"root_project_name": name})

    def template_context(self) -> dict[str, Any]:
        """Return the variables exposed to rendered templates."""
        return {
            "display_name": self.display_name,
            "internal_name": self.internal_name,
            "root_path": self.root_path,
            "app_id": self.app_id,
            "root_project_name": self.root_project_name,
            "generated_id": str(self.generated_id),
        }


def overlay_options(*layers: GeneratorOptions) -> dict[str, Any]:
    """Overlay option layers left to right; later supplied fields win."""
    merged: dict[str, Any] = {}
    for layer in layers:
        merged.update(layer.supplied())
    return merged


def resolve_config(
    explicit: GeneratorOptions,
    answers: GeneratorOptions | None = None,
    *,
    empty_name_policy: EmptyNamePolicy = EmptyNamePolicy.DEFAULT,
) -> ResolvedConfig:
    """Build the ``ResolvedConfig`` for one run.

    Precedence is defaults <- prompt answers <- explicit options, field by
    field.  Missing or blank values are defaulted rather than rejected; the
    defaulted field names are recorded on the result.

    Raises:
        InvalidRootPathError: The root path is absolute or escapes the root.
        EmptyProjectNameError: The name sanitises to ``""`` and
            *empty_name_policy* is ``REJECT``.
    """
    answers = answers or GeneratorOptions()
    merged = overlay_options(DEFAULTS, answers, explicit)
    supplied = set(answers.supplied()) | set(explicit.supplied())
    defaulted = {field for field in DEFAULTS.supplied() if field not in supplied}

    root_path = normalize_root_path(merged["root_path"])

    app_id = merged["app_id"].strip()
    if not app_id:
        app_id = DEFAULT_APP_ID
        defaulted.add("app_id")

    display_name, internal_name = sanitize_project_name(merged["name"])
    if not display_name:
        if empty_name_policy is EmptyNamePolicy.REJECT:
            raise EmptyProjectNameError(
                f"project name {merged['name']!r} contains no usable characters"
            )
        if empty_name_policy is EmptyNamePolicy.DEFAULT:
            display_name, internal_name = sanitize_project_name(DEFAULT_PROJECT_NAME)
            defaulted.add("name")

    return ResolvedConfig(
        display_name=display_name,
        internal_name=internal_name,
        root_path=root_path,
        app_id=app_id,
        skip_install=merged["skip_install"],
        root_project_name=internal_name,
        defaulted_fields=frozenset(defaulted),
    )
