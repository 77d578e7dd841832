"""Shared builders and in-memory gateways for release tests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from tu.core.config import (
    ArtifactOptions,
    BasePackageManifest,
    Config,
    GeneralOptions,
    GitHubOptions,
    NuGetOptions,
    PackageManifest,
    StagingOptions,
)
from tu.core.result import Err, Ok, Result
from tu.services.release.errors import ReleaseError
from tu.services.release.frameworks import TargetFramework
from tu.services.release.model import PackageSpecData, RepositoryEntry
from tu.services.release.semver import SemanticVersion, parse_version, tag_name


def ver(text: str) -> SemanticVersion:
    parsed = parse_version(text)
    assert parsed is not None, text
    return parsed


def make_config(
    *,
    branch: str = "releases",
    prerelease_identifier: str | None = None,
    limit: int = 0,
    api_key: str | None = "key",
    staging: StagingOptions | None = None,
) -> Config:
    return Config(
        general=GeneralOptions(start_year=2024, authors="Jane Doe", version_creation_limit=limit),
        package=PackageManifest(
            id="Blazor.Radzen.Theming",
            repository_owner="acme",
            repository_name="theming",
            repository_branch_name=branch,
            prerelease_identifier=prerelease_identifier,
        ),
        base_package=BasePackageManifest(
            id="Radzen.Blazor",
            repository_owner="radzenhq",
            repository_name="radzen-blazor",
            content_folder_path="Radzen.Blazor/themes",
        ),
        artifact=ArtifactOptions(
            package_build_folder_name="build",
            package_content_folder_name="content",
            build_property_prefix="RadzenTheming",
            project_content_folder_name="radzen-themes",
        ),
        github=GitHubOptions(
            token="gh-token",
            commit_message_template="Update {packageId} to {packageVersion} ({basePackageVersion})",
            release_note_template="{commitMessage}\nSee {basePackageReleaseUrl}",
        ),
        nuget=NuGetOptions(source="https://feed.test/v3/index.json", api_key=api_key),
        staging=staging or StagingOptions(),
    )


def with_staging(config: Config, **changes: object) -> Config:
    return replace(config, staging=replace(config.staging, **changes))


class FakeRegistry:
    def __init__(self, versions: dict[str, list[str]]) -> None:
        self.versions = {k: [ver(v) for v in vs] for k, vs in versions.items()}
        self.spec = PackageSpecData(
            commit_id="abc1234def",
            target_frameworks=(TargetFramework.parse("net8.0"),),
        )
        self.fail_list: str | None = None
        self.fail_spec = False
        self.spec_requests: list[SemanticVersion] = []

    async def list_versions(self, package_id: str) -> Result[list[SemanticVersion], ReleaseError]:
        if package_id == self.fail_list:
            return Err(ReleaseError(kind="registry_failed", message="feed down"))
        return Ok(list(self.versions.get(package_id, [])))

    async def get_package_spec_data(
        self, package_id: str, version: SemanticVersion
    ) -> Result[PackageSpecData, ReleaseError]:
        self.spec_requests.append(version)
        if self.fail_spec:
            return Err(ReleaseError(kind="registry_failed", message="download failed"))
        return Ok(self.spec)


class FakeGitHub:
    def __init__(self, *, existing_tags: Sequence[str] = (), branch: str = "releases") -> None:
        self.existing_tags = [t.lower() for t in existing_tags]
        self.branch = branch
        self.calls: list[str] = []
        self.commits: list[tuple[Path, str]] = []
        self.releases: list[tuple[SemanticVersion, str]] = []
        self.fail_commit = False
        self.delete_result: Result[bool, ReleaseError] = Ok(True)

    async def find_package_tag(self, version: SemanticVersion) -> Result[str | None, ReleaseError]:
        self.calls.append(f"find_tag {tag_name(version)}")
        name = tag_name(version)
        return Ok(name if name.lower() in self.existing_tags else None)

    async def ensure_branch_exists(self) -> Result[None, ReleaseError]:
        self.calls.append("ensure_branch")
        return Ok(None)

    async def list_base_contents(
        self, folder: str, reference: str
    ) -> Result[list[RepositoryEntry], ReleaseError]:
        self.calls.append(f"list {folder}@{reference}")
        return Ok([])

    async def resolve_base_release_url(self, reference: str) -> Result[str | None, ReleaseError]:
        self.calls.append(f"resolve {reference}")
        return Ok(None)

    async def create_commit(self, staging: Path, message: str) -> Result[str, ReleaseError]:
        self.calls.append("commit")
        if self.fail_commit:
            return Err(ReleaseError(kind="github_failed", message="failed to create tree"))
        self.commits.append((staging, message))
        return Ok(f"{len(self.commits):07d}ffffffffffffffffffffffffffffffff")

    async def create_release(
        self, version: SemanticVersion, notes: str
    ) -> Result[str | None, ReleaseError]:
        self.calls.append(f"release {tag_name(version)}")
        self.releases.append((version, notes))
        self.existing_tags.append(tag_name(version).lower())
        return Ok(f"https://github.com/acme/theming/releases/tag/{tag_name(version)}")

    async def delete_branch_and_releases(self) -> Result[bool, ReleaseError]:
        self.calls.append("delete_branch")
        return self.delete_result


class FakeNuGet:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.packed: list[tuple[Path, SemanticVersion, str]] = []
        self.fail_pack = False
        self.fail_push = False

    async def create_package(
        self, staging: Path, version: SemanticVersion, commit_id: str
    ) -> Result[Path, ReleaseError]:
        self.calls.append(f"pack {version.normalized} {commit_id}")
        if self.fail_pack:
            return Err(ReleaseError(kind="pack_failed", message="creating package failed"))
        self.packed.append((staging, version, commit_id))
        return Ok(staging / "package" / f"Blazor.Radzen.Theming.{version.normalized}.nupkg")

    async def upload_package(self, package_file: Path) -> Result[None, ReleaseError]:
        self.calls.append(f"push {package_file.name}")
        if self.fail_push:
            return Err(ReleaseError(kind="push_failed", message="uploading package failed"))
        return Ok(None)

    async def delete_package(self, version: SemanticVersion) -> Result[bool, ReleaseError]:
        self.calls.append(f"delete {version.normalized}")
        return Ok(version.is_prerelease)


class FakeStager:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.assembled: list[tuple[SemanticVersion, SemanticVersion, str]] = []
        self.deleted = 0
        self.fail = False

    @property
    def staging_root(self) -> Path:
        return self.root

    async def assemble(
        self,
        version: SemanticVersion,
        base_version: SemanticVersion,
        frameworks: Sequence[TargetFramework],
        reference: str,
    ) -> Result[Path, ReleaseError]:
        if self.fail:
            return Err(ReleaseError(kind="staging_failed", message="disk full"))
        self.assembled.append((version, base_version, reference))
        self.root.mkdir(parents=True, exist_ok=True)
        return Ok(self.root)

    def delete_staging_root(self) -> Result[bool, ReleaseError]:
        self.deleted += 1
        return Ok(True)
