from __future__ import annotations

from pathlib import Path

from tu.core.config import NuGetOptions, PackageManifest
from tu.core.result import Err, Ok, Result
from tu.output.console import ConsoleProtocol
from tu.platform.process import run as run_process
from tu.services.release.errors import ReleaseError
from tu.services.release.semver import SemanticVersion
from tu.services.release.timeouts import (
    NUGET_DELETE_TIMEOUT_SECONDS,
    NUGET_PACK_TIMEOUT_SECONDS,
    NUGET_PUSH_TIMEOUT_SECONDS,
)

PACKAGE_OUTPUT_FOLDER = "package"


def artifact_path(staging: Path, package_id: str, version: SemanticVersion) -> Path:
    """Where ``nuget pack`` writes the package for ``version``."""
    return staging / PACKAGE_OUTPUT_FOLDER / f"{package_id}.{version.normalized}.nupkg"


class NuGetCli:
    """Wraps the ``nuget`` executable: pack, push, delete."""

    def __init__(
        self, package: PackageManifest, nuget: NuGetOptions, console: ConsoleProtocol
    ) -> None:
        self._package = package
        self._nuget = nuget
        self._console = console

    def _require_api_key(self, action: str) -> Result[str, ReleaseError]:
        if not self._nuget.api_key:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"cannot {action}: no NuGet API key configured",
                    hint="Set nuget.api_key or NUGET_API_KEY.",
                )
            )
        return Ok(self._nuget.api_key)

    async def create_package(
        self, staging: Path, version: SemanticVersion, commit_id: str
    ) -> Result[Path, ReleaseError]:
        """Pack the staged ``<id>.nuspec``.

        Returns:
            Ok(path) of the produced .nupkg.
        """
        self._console.debug(
            f"creating package from {staging} for version {version.normalized} "
            f"into ./{PACKAGE_OUTPUT_FOLDER}"
        )
        cmd = [
            self._nuget.executable,
            "pack",
            f"{self._package.id}.nuspec",
            "-Properties",
            f"commitId={commit_id}",
            "-OutputDirectory",
            f"./{PACKAGE_OUTPUT_FOLDER}",
        ]
        result = await run_process(cmd, cwd=staging, timeout=NUGET_PACK_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="pack_failed",
                    message="creating package failed",
                    hint=result.error.details,
                )
            )
        return Ok(artifact_path(staging, self._package.id, version))

    async def upload_package(self, package_file: Path) -> Result[None, ReleaseError]:
        self._console.debug(f"uploading package {package_file}")

        key = self._require_api_key("push")
        if isinstance(key, Err):
            return key

        cmd = [
            self._nuget.executable,
            "push",
            package_file.name,
            "-Source",
            self._nuget.source,
            "-ApiKey",
            key.value,
        ]
        result = await run_process(
            cmd, cwd=package_file.parent, timeout=NUGET_PUSH_TIMEOUT_SECONDS
        )
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="push_failed",
                    message="uploading package failed",
                    hint=result.error.details,
                )
            )
        return Ok(None)

    async def delete_package(self, version: SemanticVersion) -> Result[bool, ReleaseError]:
        """Delete a prerelease version from the source.

        Returns:
            Ok(False) without running anything when ``version`` is a release.
        """
        if not version.is_prerelease:
            self._console.warning("will not delete non-prerelease package versions")
            return Ok(False)

        key = self._require_api_key("delete")
        if isinstance(key, Err):
            return key

        self._console.debug(f"deleting package {self._package.id} {version.normalized}")
        cmd = [
            self._nuget.executable,
            "delete",
            self._package.id,
            version.normalized,
            "-NoPrompt",
            "-Source",
            self._nuget.source,
            "-ApiKey",
            key.value,
        ]
        result = await run_process(cmd, timeout=NUGET_DELETE_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="delete_failed",
                    message=f"deleting package {version.normalized} failed",
                    hint=result.error.details,
                )
            )
        return Ok(True)
