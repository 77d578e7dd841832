"""Interfaces of the collaborators driven by the release pipeline.

The concrete implementations are ``GitHubGateway``, ``NuGetRegistry``,
``NuGetCli`` and ``StagingAssembler``; tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from tu.core.result import Result
from tu.services.release.errors import ReleaseError
from tu.services.release.frameworks import TargetFramework
from tu.services.release.model import PackageSpecData, RepositoryEntry
from tu.services.release.semver import SemanticVersion


class SourceControl(Protocol):
    async def find_package_tag(
        self, version: SemanticVersion
    ) -> Result[str | None, ReleaseError]: ...

    async def ensure_branch_exists(self) -> Result[None, ReleaseError]: ...

    async def list_base_contents(
        self, folder: str, reference: str
    ) -> Result[list[RepositoryEntry], ReleaseError]: ...

    async def resolve_base_release_url(
        self, reference: str
    ) -> Result[str | None, ReleaseError]: ...

    async def create_commit(self, staging: Path, message: str) -> Result[str, ReleaseError]: ...

    async def create_release(
        self, version: SemanticVersion, notes: str
    ) -> Result[str | None, ReleaseError]: ...

    async def delete_branch_and_releases(self) -> Result[bool, ReleaseError]: ...


class PackageRegistry(Protocol):
    async def list_versions(
        self, package_id: str
    ) -> Result[list[SemanticVersion], ReleaseError]: ...

    async def get_package_spec_data(
        self, package_id: str, version: SemanticVersion
    ) -> Result[PackageSpecData, ReleaseError]: ...


class PackagingTool(Protocol):
    async def create_package(
        self, staging: Path, version: SemanticVersion, commit_id: str
    ) -> Result[Path, ReleaseError]: ...

    async def upload_package(self, package_file: Path) -> Result[None, ReleaseError]: ...

    async def delete_package(self, version: SemanticVersion) -> Result[bool, ReleaseError]: ...


class Stager(Protocol):
    @property
    def staging_root(self) -> Path: ...

    async def assemble(
        self,
        version: SemanticVersion,
        base_version: SemanticVersion,
        frameworks: Sequence[TargetFramework],
        reference: str,
    ) -> Result[Path, ReleaseError]: ...

    def delete_staging_root(self) -> Result[bool, ReleaseError]: ...
