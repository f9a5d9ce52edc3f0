"""o365gen Pipeline Orchestrator.

Runs the generator in four strictly sequential stages:

Stage 1: RESOLVE     -- Prompt for missing options, build the ResolvedConfig.
Stage 2: MANIFESTS   -- Create or merge package.json, then bower.json.
Stage 3: MATERIALIZE -- Copy and render the application files.
Stage 4: INSTALL     -- Run the package manager unless --skip-install.

Usage::

    o365gen ./my-app --name "My Project" --root-path src --skip-install
    python -m o365gen --no-prompt
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.markup import escape
from rich.panel import Panel

from o365gen.config import (
    PROMPTED_FIELDS,
    ConfigurationError,
    EmptyNamePolicy,
    GeneratorOptions,
    ResolvedConfig,
    Settings,
    resolve_config,
)
from o365gen.prompts import Asker, collect_answers
from o365gen.scaffolder import MalformedManifestError, ProjectGenerator, TemplateRenderer
from o365gen.utils import (
    STAGE_NAMES,
    console,
    format_duration,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PipelineError(Exception):
    """Raised when a pipeline stage fails irrecoverably."""

    def __init__(self, stage: int, message: str) -> None:
        self.stage = stage
        super().__init__(f"Stage {stage} ({STAGE_NAMES.get(stage, '?')}): {message}")


class InstallError(RuntimeError):
    """Raised when the dependency installation command fails."""

    def __init__(self, command: list[str], returncode: int, detail: str = "") -> None:
        self.command = command
        self.returncode = returncode
        message = f"'{' '.join(command)}' exited with status {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


async def install_dependencies(destination: Path, settings: Settings) -> None:
    """Run the configured install command inside *destination*.

    Output is streamed to the terminal rather than captured.

    Raises:
        InstallError: The command could not be started or exited non-zero.
    """
    command = list(settings.install_command)
    try:
        returncode, _, stderr = await run_command(
            command,
            cwd=destination,
            timeout=settings.install_timeout,
            capture=False,
        )
    except OSError as exc:
        raise InstallError(command, -1, str(exc)) from exc
    if returncode != 0:
        raise InstallError(command, returncode, stderr)


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Drives one generation run.

    Attributes:
        options: Explicit options (CLI flags or API arguments).
        destination: Directory the project is generated into.
        settings: Tool settings.
        config: The ``ResolvedConfig`` once stage 1 has run; replaced by the
            corrected config after stage 2.
        state: Accumulates the result of every stage.
    """

    def __init__(
        self,
        options: GeneratorOptions,
        destination: str | Path = ".",
        settings: Settings | None = None,
        *,
        ask: Asker | None = None,
    ) -> None:
        self.options = options
        self.destination = Path(destination)
        self.settings = settings or Settings()
        self.generator = ProjectGenerator(TemplateRenderer(self.settings.template_dir))
        self.config: ResolvedConfig | None = None
        self._ask = ask
        self.state: dict[str, Any] = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "stages_completed": [],
            "stages_failed": [],
            "success": False,
        }

    # ------------------------------------------------------------------
    # Stage dispatch
    # ------------------------------------------------------------------

    _STAGE_METHODS: dict[int, str] = {
        1: "stage1_resolve",
        2: "stage2_manifests",
        3: "stage3_materialize",
        4: "stage4_install",
    }

    async def run(self) -> dict[str, Any]:
        """Execute every stage in order, stopping at the first failure.

        Returns:
            The final state dictionary, including a top-level ``success``
            boolean and ``stage<N>_error`` for a failed stage.
        """
        pipeline_start = time.monotonic()

        console.print(
            Panel(
                "Welcome to the [bold red]Office 365 Web Application[/bold red] "
                "project generator!\nLet's create a project together!",
                border_style="bright_cyan",
            )
        )

        all_success = True

        for stage_num in sorted(self._STAGE_METHODS):
            stage_name = STAGE_NAMES.get(stage_num, "UNKNOWN")
            print_stage_header(stage_num, stage_name)

            stage_start = time.monotonic()
            try:
                method = getattr(self, self._STAGE_METHODS[stage_num])
                result = await method()

                elapsed = time.monotonic() - stage_start
                self.state[f"stage{stage_num}"] = result
                self.state["stages_completed"].append(stage_num)
                print_success(
                    f"Stage {stage_num} ({stage_name}) completed in {format_duration(elapsed)}"
                )

            except PipelineError as exc:
                elapsed = time.monotonic() - stage_start
                all_success = False
                self.state["stages_failed"].append(stage_num)
                self.state[f"stage{stage_num}_error"] = str(exc)
                print_error(
                    f"Stage {stage_num} ({stage_name}) FAILED after "
                    f"{format_duration(elapsed)}: {exc}"
                )
                # Later stages depend on earlier ones.
                break

            except Exception as exc:
                elapsed = time.monotonic() - stage_start
                all_success = False
                self.state["stages_failed"].append(stage_num)
                tb = traceback.format_exc()
                self.state[f"stage{stage_num}_error"] = tb
                print_error(
                    f"Stage {stage_num} ({stage_name}) FAILED after "
                    f"{format_duration(elapsed)}: {exc}"
                )
                console.print(f"[dim]{escape(tb)}[/dim]")
                break

        total_elapsed = time.monotonic() - pipeline_start
        self.state["success"] = all_success
        self.state["total_duration"] = format_duration(total_elapsed)
        self.state["finished_at"] = datetime.now(timezone.utc).isoformat()

        self._print_final_summary(total_elapsed)
        return self.state

    # ------------------------------------------------------------------
    # Stage 1: RESOLVE
    # ------------------------------------------------------------------

    async def stage1_resolve(self) -> dict[str, Any]:
        """Prompt for missing options and build the ``ResolvedConfig``."""
        answers = collect_answers(
            self.options,
            self.destination.resolve(),
            interactive=self.settings.interactive,
            ask=self._ask,
        )
        try:
            self.config = resolve_config(
                self.options,
                answers,
                empty_name_policy=self.settings.empty_name_policy,
            )
        except ConfigurationError as exc:
            raise PipelineError(1, str(exc)) from exc

        defaulted = sorted(self.config.defaulted_fields & set(PROMPTED_FIELDS))
        if defaulted:
            print_warning(f"  Using default values for: {', '.join(defaulted)}")

        print_summary_table(
            {
                "Display name": self.config.display_name,
                "Internal name": self.config.internal_name,
                "Root path": self.config.root_path or "(destination root)",
                "Application ID": self.config.app_id,
                "Skip install": str(self.config.skip_install),
            },
            title="Stage 1 Results",
        )
        return self.config.model_dump(mode="json")

    # ------------------------------------------------------------------
    # Stage 2: MANIFESTS
    # ------------------------------------------------------------------

    async def stage2_manifests(self) -> dict[str, Any]:
        """Create or merge ``package.json`` and ``bower.json``."""
        config = self._require_config(2)
        try:
            self.config, results = await self.generator.upsert_manifests(
                self.destination, config
            )
        except MalformedManifestError as exc:
            raise PipelineError(2, f"Malformed manifest, left untouched: {exc}") from exc
        except OSError as exc:
            raise PipelineError(2, f"File system failure: {exc}") from exc

        for filename, result in results.items():
            console.print(
                f"  [green]+[/green] {filename} {result.action.value}"
                + (f" (added: {', '.join(result.added)})" if result.added else "")
            )

        return {
            "root_project_name": self.config.root_project_name,
            "manifests": {
                filename: {"action": result.action.value, "added": result.added}
                for filename, result in results.items()
            },
        }

    # ------------------------------------------------------------------
    # Stage 3: MATERIALIZE
    # ------------------------------------------------------------------

    async def stage3_materialize(self) -> dict[str, Any]:
        """Copy and render the infrastructure and application files."""
        config = self._require_config(3)
        try:
            files = await self.generator.write_files(self.destination, config)
        except OSError as exc:
            raise PipelineError(3, f"File system failure: {exc}") from exc

        console.print(f"  [green]+[/green] {len(files)} file(s) written")
        return {
            "files_written": len(files),
            "files": [str(path) for path in files],
        }

    # ------------------------------------------------------------------
    # Stage 4: INSTALL
    # ------------------------------------------------------------------

    async def stage4_install(self) -> dict[str, Any]:
        """Run the package manager in the destination unless skipped."""
        config = self._require_config(4)
        if config.skip_install:
            console.print("  Skipping dependency installation (--skip-install).")
            return {"skipped": True}

        try:
            await install_dependencies(self.destination, self.settings)
        except InstallError as exc:
            raise PipelineError(4, str(exc)) from exc
        return {"skipped": False, "command": list(self.settings.install_command)}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_config(self, stage: int) -> ResolvedConfig:
        if self.config is None:
            raise PipelineError(stage, "configuration not resolved (run stage 1 first)")
        return self.config

    def _print_final_summary(self, total_elapsed: float) -> None:
        """Print the final pipeline summary panel."""
        stages_ok = self.state.get("stages_completed", [])
        stages_fail = self.state.get("stages_failed", [])

        if self.state.get("success"):
            border_style = "bold green"
            status_text = "[bold green]GENERATION SUCCEEDED[/bold green]"
        else:
            border_style = "bold red"
            status_text = "[bold red]GENERATION FAILED[/bold red]"

        detail_lines = [
            status_text,
            "",
            f"Destination : {escape(str(self.destination.resolve()))}",
            f"Duration    : {format_duration(total_elapsed)}",
            f"Completed   : {', '.join(str(s) for s in stages_ok) or 'none'}",
        ]
        if stages_fail:
            detail_lines.append(f"Failed      : {', '.join(str(s) for s in stages_fail)}")

        console.print()
        console.print(Panel("\n".join(detail_lines), title="Summary", border_style=border_style))


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``o365gen`` and ``python -m o365gen``."""
    import argparse
    import asyncio

    parser = argparse.ArgumentParser(
        description="Scaffold an Office 365 web application (AngularJS + ADAL)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  o365gen\n"
            "  o365gen ./my-app --name 'My Project' --root-path src\n"
            "  o365gen --no-prompt --skip-install\n"
        ),
    )

    parser.add_argument(
        "destination",
        nargs="?",
        default=".",
        help="Destination directory (default: current directory)",
    )
    parser.add_argument("--name", default=None, help="Title of the Office project")
    parser.add_argument(
        "--root-path",
        default=None,
        help="Relative path where the project should be created (blank = destination root)",
    )
    parser.add_argument(
        "--app-id",
        "--appId",
        dest="app_id",
        default=None,
        help="Application ID as registered in Azure AD",
    )
    parser.add_argument(
        "--skip-install",
        action="store_true",
        default=None,
        help="Skip running package managers post scaffolding",
    )
    parser.add_argument(
        "--no-prompt",
        action="store_true",
        help="Never prompt; use defaults for options that were not given",
    )
    parser.add_argument(
        "--reject-empty-name",
        action="store_true",
        help="Fail when the project name contains no usable characters",
    )

    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as exc:
        console.print(
            f"[bold red]Error:[/bold red] Invalid O365GEN_* setting: {escape(str(exc))}"
        )
        sys.exit(1)

    updates: dict[str, Any] = {}
    if args.no_prompt:
        updates["interactive"] = False
    if args.reject_empty_name:
        updates["empty_name_policy"] = EmptyNamePolicy.REJECT
    if updates:
        settings = settings.model_copy(update=updates)

    options = GeneratorOptions(
        name=args.name,
        root_path=args.root_path,
        app_id=args.app_id,
        skip_install=args.skip_install,
    )

    pipeline = Pipeline(options, args.destination, settings)
    result = asyncio.run(pipeline.run())

    if not result.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
