from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from tu import __version__
from tu.cli.context import build_context, build_pipeline
from tu.core.errors import ErrorCode
from tu.services.release.errors import ReleaseError
from tu.services.release.model import RunOptions, RunSummary


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def exit_code(error: ReleaseError | None) -> ErrorCode:
    if error is None or error.is_informational:
        return ErrorCode.OK
    match error.kind:
        case "invalid_options":
            return ErrorCode.USER_ERROR
        case "invalid_input":
            return ErrorCode.CONFIG_ERROR
        case "cleanup_failed":
            return ErrorCode.CLEANUP_ERROR
        case _:
            return ErrorCode.EXTERNAL_ERROR


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Publish themeable packages for new base package versions."""


@app.command("create-release")
def create_release(
    no_commit: bool = typer.Option(
        False, "--no-commit", help="Do not commit to GitHub (implies --no-release)."
    ),
    no_release: bool = typer.Option(False, "--no-release", help="Do not create a GitHub release."),
    pack: bool = typer.Option(False, "--pack", help="Create the NuGet package."),
    push: bool = typer.Option(
        False, "--push", help="Push the package to the package source (implies --pack)."
    ),
    no_clean_files: bool = typer.Option(
        False, "--no-clean-files", help="Keep staging files from a previous run."
    ),
    clean_github: bool = typer.Option(
        False, "--clean-github", help="Delete the release branch and its releases first."
    ),
    clean_nuget: bool = typer.Option(
        False, "--clean-nuget", help="Delete the latest (prerelease) package version first."
    ),
    clean_all: bool = typer.Option(False, "--clean-all", help="Run every cleanup first."),
    config: Path = typer.Option(Path("config.toml"), "--config", "-c", help="Config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every step."),
) -> None:
    """Release the base package versions not yet packaged."""
    options = RunOptions(
        no_commit=no_commit,
        no_release=no_release,
        pack=pack,
        push=push,
        no_clean_files=no_clean_files,
        clean_github=clean_github,
        clean_nuget=clean_nuget,
        clean_all=clean_all,
    )

    # Checked before loading config so a bad flag combination never touches anything.
    invalid = options.validate()
    if invalid is not None:
        typer.echo(f"warning: {invalid.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    ctx = build_context(config, verbose=verbose)
    pipeline = build_pipeline(ctx)

    try:
        summary: RunSummary = asyncio.run(pipeline.run(options))
    except KeyboardInterrupt:
        ctx.console.warning("cancelled")
        raise typer.Exit(code=int(ErrorCode.CANCELLED))

    code = exit_code(summary.error)
    if code.is_success and summary.completed:
        ctx.console.success(f"{len(summary.completed)} version(s) released")
    raise typer.Exit(code=int(code))


def main() -> None:
    app()
