from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from tu.core.config import Config, load_config
from tu.core.errors import ErrorCode
from tu.core.result import Err
from tu.output.console import ConsoleProtocol, RichConsole
from tu.platform.http import RealHttpClient
from tu.services.release.github import GitHubGateway
from tu.services.release.nuget_api import NuGetRegistry
from tu.services.release.nuget_cli import NuGetCli
from tu.services.release.pipeline import ReleasePipeline
from tu.services.release.staging import StagingAssembler


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol


def build_context(config_path: Path, *, verbose: bool = False) -> CLIContext:
    result = load_config(config_path)
    if isinstance(result, Err):
        typer.echo(f"error: {result.error.message}", err=True)
        if result.error.path is not None:
            typer.echo(f"  config: {result.error.path}", err=True)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    return CLIContext(config=result.value, console=RichConsole(verbose=verbose))


def build_pipeline(ctx: CLIContext) -> ReleasePipeline:
    config = ctx.config
    console = ctx.console
    http = RealHttpClient()
    github = GitHubGateway(config, console)

    return ReleasePipeline(
        config,
        console,
        registry=NuGetRegistry(config.nuget.source, http, console),
        github=github,
        nuget=NuGetCli(config.package, config.nuget, console),
        staging=StagingAssembler(config, console, github, http),
    )
