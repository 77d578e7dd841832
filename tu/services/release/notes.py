from __future__ import annotations

from tu.core.config import BasePackageManifest, GitHubOptions, PackageManifest
from tu.services.release.refs import releases_url
from tu.services.release.semver import SemanticVersion
from tu.services.release.tokens import replace_tokens


def _version_tokens(
    *,
    package: PackageManifest,
    base_package: BasePackageManifest,
    version: SemanticVersion,
    base_version: SemanticVersion,
) -> dict[str, str]:
    return {
        "{packageId}": package.id,
        "{packageVersion}": version.normalized,
        "{basePackageId}": base_package.id,
        "{basePackageVersion}": base_version.normalized,
    }


def render_commit_message(
    *,
    github: GitHubOptions,
    package: PackageManifest,
    base_package: BasePackageManifest,
    version: SemanticVersion,
    base_version: SemanticVersion,
) -> str:
    tokens = _version_tokens(
        package=package, base_package=base_package, version=version, base_version=base_version
    )
    return replace_tokens(github.commit_message_template, tokens)


def render_release_notes(
    *,
    github: GitHubOptions,
    package: PackageManifest,
    base_package: BasePackageManifest,
    version: SemanticVersion,
    base_version: SemanticVersion,
    commit_message: str,
    base_release_url: str | None,
) -> str:
    tokens = _version_tokens(
        package=package, base_package=base_package, version=version, base_version=base_version
    )
    tokens["{commitMessage}"] = commit_message
    tokens["{basePackageReleaseUrl}"] = base_release_url or releases_url(
        base_package.repository_address
    )
    return replace_tokens(github.release_note_template, tokens)
