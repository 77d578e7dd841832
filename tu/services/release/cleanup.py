"""Pre-flight cleanup before any release work.

Each step undoes what a previous (possibly aborted) run left behind. Steps
run in a fixed order, workspace then GitHub then NuGet, and the first step
that refuses or fails stops the sequence.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from tu.core.result import Err
from tu.output.console import ConsoleProtocol
from tu.services.release.gateways import PackagingTool, SourceControl, Stager
from tu.services.release.model import RunOptions
from tu.services.release.semver import SemanticVersion


class Cleanup(Protocol):
    async def __call__(self, latest: SemanticVersion) -> bool:
        """Return True once the step's state is clean."""
        ...


@dataclass(frozen=True, slots=True)
class CleanupStep:
    name: str
    cleanup: Cleanup
    on_success: Callable[[], None]


async def run_cleanup(steps: list[CleanupStep], latest: SemanticVersion) -> bool:
    """Run ``steps`` in order; False at the first one that does not succeed."""
    for step in steps:
        if not await step.cleanup(latest):
            return False
        step.on_success()
    return True


def workspace_step(staging: Stager, console: ConsoleProtocol) -> CleanupStep:
    async def cleanup(latest: SemanticVersion) -> bool:
        result = staging.delete_staging_root()
        if isinstance(result, Err):
            console.error(result.error.message)
            return False
        return True

    return CleanupStep(
        name="workspace",
        cleanup=cleanup,
        on_success=lambda: console.info("Staging folder deleted."),
    )


def github_step(github: SourceControl, console: ConsoleProtocol) -> CleanupStep:
    async def cleanup(latest: SemanticVersion) -> bool:
        result = await github.delete_branch_and_releases()
        if isinstance(result, Err):
            console.error(result.error.message)
            if result.error.hint:
                console.print(result.error.hint)
            return False
        return result.value

    return CleanupStep(
        name="github",
        cleanup=cleanup,
        on_success=lambda: console.info("GitHub branch and releases deleted."),
    )


def nuget_step(nuget: PackagingTool, console: ConsoleProtocol) -> CleanupStep:
    async def cleanup(latest: SemanticVersion) -> bool:
        result = await nuget.delete_package(latest)
        if isinstance(result, Err):
            console.error(result.error.message)
            if result.error.hint:
                console.print(result.error.hint)
            return False
        return result.value

    return CleanupStep(
        name="nuget",
        cleanup=cleanup,
        on_success=lambda: console.info("NuGet package deleted."),
    )


def select_cleanup_steps(
    options: RunOptions,
    *,
    staging: Stager,
    github: SourceControl,
    nuget: PackagingTool,
    console: ConsoleProtocol,
) -> list[CleanupStep]:
    steps: list[CleanupStep] = []
    if options.clean_files:
        steps.append(workspace_step(staging, console))
    if options.clean_source_control:
        steps.append(github_step(github, console))
    if options.clean_registry:
        steps.append(nuget_step(nuget, console))
    return steps
