"""Interactive prompts for options that were not supplied up front.

Only fields missing from the explicit options are asked for; the answers are
returned as a ``GeneratorOptions`` layer for :func:`o365gen.config.resolve_config`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from rich.markup import escape
from rich.prompt import Prompt

from .config import CURRENT_FOLDER, DEFAULT_APP_ID, DEFAULT_PROJECT_NAME, GeneratorOptions
from .utils import console

Asker = Callable[[str, str], str]


def _rich_ask(message: str, default: str) -> str:
    return Prompt.ask(escape(message), default=default, console=console)


def prompt_messages(destination: Path) -> dict[str, tuple[str, str]]:
    """Return ``{field: (message, default)}`` for every promptable field."""
    return {
        "name": ("Project name (display name):", DEFAULT_PROJECT_NAME),
        "root_path": (
            "Root folder of project? Default to current directory\n"
            f" ({destination}), or specify relative path\n"
            " from current (src / public):",
            CURRENT_FOLDER,
        ),
        "app_id": ("Application ID as registered in Azure AD:", DEFAULT_APP_ID),
    }


def collect_answers(
    explicit: GeneratorOptions,
    destination: Path,
    *,
    interactive: bool = True,
    ask: Asker | None = None,
) -> GeneratorOptions:
    """Ask for every promptable field absent from *explicit*.

    When *interactive* is false nothing is asked and an empty layer is
    returned, so defaults apply to the missing fields.
    """
    if not interactive:
        return GeneratorOptions()

    ask = ask or _rich_ask
    messages = prompt_messages(destination)
    answers: dict[str, str] = {}
    for field in explicit.missing():
        message, default = messages[field]
        answers[field] = ask(message, default)
    return GeneratorOptions(**answers)
