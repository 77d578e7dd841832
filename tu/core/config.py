"""Typed configuration loading.

The run is configured from a single TOML file:

    [general]       start_year, authors, version_creation_limit
    [package]       the derived package and the repository it is released from
    [base_package]  the upstream package and the repository content is copied from
    [staging]       where release files are assembled locally
    [artifact]      folder names and prefixes used inside the produced package
    [github]        token and commit/release templates
    [nuget]         package source, API key and packaging executable

Secrets can be kept out of the file: ``GITHUB_TOKEN`` and ``NUGET_API_KEY``
override ``github.token`` and ``nuget.api_key``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_int, get_raw_str, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "GeneralOptions",
    "PackageManifest",
    "BasePackageManifest",
    "StagingOptions",
    "ArtifactOptions",
    "GitHubOptions",
    "NuGetOptions",
    "load_config",
    "github_address",
    "GITHUB_TOKEN_ENV",
    "NUGET_API_KEY_ENV",
]

GITHUB_TOKEN_ENV = "GITHUB_TOKEN"
NUGET_API_KEY_ENV = "NUGET_API_KEY"

DEFAULT_STAGING_FOLDER = "output"
DEFAULT_NUGET_EXECUTABLE = "nuget"


def github_address(owner: str, name: str) -> str:
    return f"https://github.com/{owner}/{name}"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or is incomplete."""

    message: str
    path: Path | None = None
    missing: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class GeneralOptions:
    start_year: int
    authors: str
    # 0 means unlimited.
    version_creation_limit: int = 0


@dataclass(frozen=True, slots=True)
class PackageManifest:
    """The derived package and its release repository."""

    id: str
    repository_owner: str
    repository_name: str
    repository_branch_name: str
    # Suffixed with ".<unix seconds>" when set.
    prerelease_identifier: str | None = None

    @property
    def repository_address(self) -> str:
        return github_address(self.repository_owner, self.repository_name)

    @property
    def slug(self) -> str:
        return f"{self.repository_owner}/{self.repository_name}"


@dataclass(frozen=True, slots=True)
class BasePackageManifest:
    """The upstream package and the repository its content is copied from."""

    id: str
    repository_owner: str
    repository_name: str
    content_folder_path: str

    @property
    def repository_address(self) -> str:
        return github_address(self.repository_owner, self.repository_name)

    @property
    def slug(self) -> str:
        return f"{self.repository_owner}/{self.repository_name}"


@dataclass(frozen=True, slots=True)
class StagingOptions:
    folder: str = DEFAULT_STAGING_FOLDER
    keep_folder: bool = False
    create_version_subfolders: bool = False


@dataclass(frozen=True, slots=True)
class ArtifactOptions:
    """Folder names and prefixes used inside the produced package.

    Attributes:
        package_build_folder_name: Folder for MSBuild .props/.targets files.
        package_content_folder_name: Folder receiving the upstream content files.
        build_property_prefix: Prefix for MSBuild properties (replaces ``_PRFX_``).
        project_content_folder_name: Folder under ``obj`` of a consuming project
            where content is copied during restore.
    """

    package_build_folder_name: str
    package_content_folder_name: str
    build_property_prefix: str
    project_content_folder_name: str


@dataclass(frozen=True, slots=True)
class GitHubOptions:
    token: str
    # {packageId} {packageVersion} {basePackageId} {basePackageVersion}
    commit_message_template: str
    # ... plus {commitMessage} {basePackageReleaseUrl}
    release_note_template: str


@dataclass(frozen=True, slots=True)
class NuGetOptions:
    source: str
    api_key: str | None = None
    executable: str = DEFAULT_NUGET_EXECUTABLE


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    general: GeneralOptions
    package: PackageManifest
    base_package: BasePackageManifest
    artifact: ArtifactOptions
    github: GitHubOptions
    nuget: NuGetOptions
    staging: StagingOptions = field(default_factory=StagingOptions)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, object],
        env: Mapping[str, str] | None = None,
    ) -> Result[Config, ConfigError]:
        """Create Config from parsed TOML, collecting every missing key."""
        env = os.environ if env is None else env

        general: StrDict = get_table(data, "general") or {}
        package: StrDict = get_table(data, "package") or {}
        base: StrDict = get_table(data, "base_package") or {}
        staging: StrDict = get_table(data, "staging") or {}
        artifact: StrDict = get_table(data, "artifact") or {}
        github: StrDict = get_table(data, "github") or {}
        nuget: StrDict = get_table(data, "nuget") or {}

        missing: list[str] = []

        def req_str(table: StrDict, section: str, key: str) -> str:
            value = get_str(table, key)
            if value is None:
                missing.append(f"{section}.{key}")
                return ""
            return value

        def req_template(table: StrDict, section: str, key: str) -> str:
            value = get_raw_str(table, key)
            if value is None:
                missing.append(f"{section}.{key}")
                return ""
            return value

        start_year = get_int(general, "start_year")
        if start_year is None:
            missing.append("general.start_year")
            start_year = 0

        limit = get_int(general, "version_creation_limit") or 0
        if limit < 0:
            return Err(ConfigError("general.version_creation_limit must be >= 0"))

        token = env.get(GITHUB_TOKEN_ENV) or get_str(github, "token")
        if token is None:
            missing.append(f"github.token (or ${GITHUB_TOKEN_ENV})")

        config = cls(
            general=GeneralOptions(
                start_year=start_year,
                authors=req_str(general, "general", "authors"),
                version_creation_limit=limit,
            ),
            package=PackageManifest(
                id=req_str(package, "package", "id"),
                repository_owner=req_str(package, "package", "repository_owner"),
                repository_name=req_str(package, "package", "repository_name"),
                repository_branch_name=req_str(package, "package", "repository_branch_name"),
                prerelease_identifier=get_str(package, "prerelease_identifier"),
            ),
            base_package=BasePackageManifest(
                id=req_str(base, "base_package", "id"),
                repository_owner=req_str(base, "base_package", "repository_owner"),
                repository_name=req_str(base, "base_package", "repository_name"),
                content_folder_path=req_str(base, "base_package", "content_folder_path"),
            ),
            staging=StagingOptions(
                folder=get_str(staging, "folder") or DEFAULT_STAGING_FOLDER,
                keep_folder=bool(get_bool(staging, "keep_folder")),
                create_version_subfolders=bool(get_bool(staging, "create_version_subfolders")),
            ),
            artifact=ArtifactOptions(
                package_build_folder_name=req_str(artifact, "artifact", "package_build_folder_name"),
                package_content_folder_name=req_str(
                    artifact, "artifact", "package_content_folder_name"
                ),
                build_property_prefix=req_str(artifact, "artifact", "build_property_prefix"),
                project_content_folder_name=req_str(
                    artifact, "artifact", "project_content_folder_name"
                ),
            ),
            github=GitHubOptions(
                token=token or "",
                commit_message_template=req_template(github, "github", "commit_message_template"),
                release_note_template=req_template(github, "github", "release_note_template"),
            ),
            nuget=NuGetOptions(
                source=req_str(nuget, "nuget", "source"),
                api_key=env.get(NUGET_API_KEY_ENV) or get_str(nuget, "api_key"),
                executable=get_str(nuget, "executable") or DEFAULT_NUGET_EXECUTABLE,
            ),
        )

        if missing:
            return Err(
                ConfigError(
                    "missing required configuration: " + ", ".join(missing),
                    missing=tuple(missing),
                )
            )
        return Ok(config)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and syntax errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(
    path: Path,
    env: Mapping[str, str] | None = None,
) -> Result[Config, ConfigError]:
    """Load and validate configuration from a TOML file.

    Args:
        path: Path to the config file.
        env: Environment used for secret overrides (defaults to os.environ).

    Returns:
        Ok(Config) on success, Err(ConfigError) listing every missing key.
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    config = Config.from_dict(result.value, env=env)
    if isinstance(config, Err):
        return Err(
            ConfigError(config.error.message, path=path, missing=config.error.missing)
        )
    return config
