from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal

from tu.services.release.errors import ReleaseError
from tu.services.release.frameworks import TargetFramework
from tu.services.release.semver import SemanticVersion


EntryKind = Literal["file", "directory", "other"]


@dataclass(frozen=True, slots=True)
class RepositoryEntry:
    """One node of the upstream repository's contents listing."""

    name: str
    path: str
    download_url: str | None
    kind: EntryKind


@dataclass(frozen=True, slots=True)
class GitRef:
    ref: str  # refs/heads/x, refs/tags/y
    sha: str
    object_type: str  # "commit" or "tag"


@dataclass(frozen=True, slots=True)
class GitRelease:
    id: int
    tag_name: str
    name: str | None
    html_url: str | None


@dataclass(frozen=True, slots=True)
class PackageSpecData:
    """What we read out of an upstream package archive."""

    commit_id: str | None
    target_frameworks: tuple[TargetFramework, ...]


class WorkItemStage(Enum):
    PENDING = "pending"
    VERSION_RESOLVED = "version_resolved"
    DUPLICATE_CHECKED = "duplicate_checked"
    METADATA_FETCHED = "metadata_fetched"
    STAGING_ASSEMBLED = "staging_assembled"
    COMMITTED = "committed"
    RELEASED = "released"
    PACKED = "packed"
    PUBLISHED = "published"
    COMPLETED = "completed"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ReleaseWorkItem:
    """One upstream version being released.

    Filled in as steps succeed; discarded when its iteration ends.
    """

    upstream_version: SemanticVersion
    target_version: SemanticVersion | None = None
    stage: WorkItemStage = WorkItemStage.PENDING
    content_reference: str | None = None
    target_frameworks: tuple[TargetFramework, ...] = ()
    staging_path: Path | None = None
    commit_id: str | None = None
    artifact_path: Path | None = None
    elapsed_ms: int | None = None

    @property
    def short_commit_id(self) -> str | None:
        return self.commit_id[:7] if self.commit_id else None


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Run flags, after applying implications.

    ``no_commit`` implies ``no_release``; ``push`` implies ``pack``.
    """

    no_commit: bool = False
    no_release: bool = False
    pack: bool = False
    push: bool = False
    no_clean_files: bool = False
    clean_github: bool = False
    clean_nuget: bool = False
    clean_all: bool = False

    @property
    def commit(self) -> bool:
        return not self.no_commit

    @property
    def release(self) -> bool:
        return not self.no_commit and not self.no_release

    @property
    def build_artifact(self) -> bool:
        return self.pack or self.push

    @property
    def clean_files(self) -> bool:
        return self.clean_all or not self.no_clean_files

    @property
    def clean_source_control(self) -> bool:
        return self.clean_all or self.clean_github

    @property
    def clean_registry(self) -> bool:
        return self.clean_all or self.clean_nuget

    def validate(self) -> ReleaseError | None:
        if self.no_commit and self.push:
            return ReleaseError(
                kind="invalid_options",
                message="cannot use --push when --no-commit is set",
                hint="Commit first to enable pushing.",
            )
        return None


def _empty_items() -> list[ReleaseWorkItem]:
    return []


@dataclass(slots=True)
class RunSummary:
    latest_version: SemanticVersion | None = None
    pending: tuple[SemanticVersion, ...] = ()
    completed: list[ReleaseWorkItem] = field(default_factory=_empty_items)
    error: ReleaseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None or self.error.is_informational
