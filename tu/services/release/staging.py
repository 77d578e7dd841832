"""Assembly of the files committed and packed for one release.

Layout of a staging folder (``<staging.folder>[/<version>]``):

    LICENSE
    README.md
    <package id>.nuspec
    lib/<tfm>/_._                      one empty marker per target framework
    <build folder>/<package id>.props
    <content folder>/...               copied from the upstream repository
    images/icon.png                    packaged assets

Templates and assets ship in ``tu/resources``.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path, PurePosixPath
from xml.sax.saxutils import escape, quoteattr

from tu.core.config import Config
from tu.core.result import Err, Ok, Result
from tu.output.console import ConsoleProtocol
from tu.platform.files import atomic_write_text, remove_tree
from tu.platform.http import HttpClient
from tu.services.release.errors import ReleaseError
from tu.services.release.frameworks import TargetFramework
from tu.services.release.gateways import SourceControl
from tu.services.release.semver import SemanticVersion
from tu.services.release.tokens import replace_tokens

RESOURCES_DIR = Path(__file__).resolve().parents[2] / "resources"
TEMPLATES_DIR = RESOURCES_DIR / "templates"
ASSETS_DIR = RESOURCES_DIR / "assets"

LICENSE_TEMPLATE = "LICENSE"
README_TEMPLATE = "README.md"
SPECIFICATION_TEMPLATE = "package.nuspec"
BUILD_PROPERTIES_TEMPLATE = "build.props"

LIBRARY_FOLDER = "lib"
# An empty file keeps lib/<tfm> in the package (avoids NU5128).
EMPTY_LIBRARY_FILE = "_._"


class _CopyFailed(Exception):
    def __init__(self, error: ReleaseError) -> None:
        super().__init__(error.message)
        self.error = error


def _first_failure(group: BaseExceptionGroup) -> _CopyFailed:
    # Nested folders produce nested groups.
    for exc in group.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            return _first_failure(exc)
        if isinstance(exc, _CopyFailed):
            return exc
    raise AssertionError("no copy failure in group")


def license_period(start_year: int, current_year: int) -> str:
    if start_year >= current_year:
        return str(start_year)
    return f"{start_year}-{current_year}"


def render_dependencies(
    frameworks: Sequence[TargetFramework],
    package_id: str,
    version: SemanticVersion,
    indent: str = "    ",
) -> str:
    """``<dependencies>`` element with one group per target framework."""
    if not frameworks:
        return "<dependencies />"

    lines = ["<dependencies>"]
    for tfm in frameworks:
        lines.append(f"{indent}  <group targetFramework={quoteattr(tfm.dependency_name)}>")
        lines.append(
            f"{indent}    <dependency id={quoteattr(package_id)} "
            f"version={quoteattr(version.normalized)} />"
        )
        lines.append(f"{indent}  </group>")
    lines.append(f"{indent}</dependencies>")
    return "\n".join(lines)


class StagingAssembler:
    """Builds the staging folder of one release.

    ``create_staging_folder`` must be called before any ``generate_*`` or
    ``copy_*`` method.
    """

    def __init__(
        self,
        config: Config,
        console: ConsoleProtocol,
        github: SourceControl,
        http: HttpClient,
        *,
        root: Path | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._config = config
        self._console = console
        self._github = github
        self._http = http
        self._today = today
        self._root = (root or Path.cwd()) / config.staging.folder
        self._folder: Path | None = None

    @property
    def staging_root(self) -> Path:
        return self._root

    @property
    def folder(self) -> Path:
        if self._folder is None:
            raise RuntimeError("staging folder not created; call create_staging_folder() first")
        return self._folder

    def _template(self, name: str) -> str:
        return (TEMPLATES_DIR / name).read_text(encoding="utf-8")

    def create_staging_folder(self, version: SemanticVersion) -> Path:
        """Create an empty staging folder for ``version``, replacing any previous one."""
        folder = self._root
        if self._config.staging.create_version_subfolders:
            folder = folder / version.normalized

        if remove_tree(folder):
            self._console.debug(f"deleted staging folder {folder}")

        self._console.debug(f"creating staging folder {folder}")
        folder.mkdir(parents=True)
        self._folder = folder
        return folder

    def generate_license_file(self) -> Path:
        general = self._config.general
        content = replace_tokens(
            self._template(LICENSE_TEMPLATE),
            {
                "$period$": license_period(general.start_year, self._today().year),
                "$authors$": general.authors,
            },
        )
        path = self.folder / LICENSE_TEMPLATE
        self._console.debug(f"generating license file {path}")
        atomic_write_text(path, content)
        return path

    def generate_readme_file(self) -> Path:
        content = replace_tokens(
            self._template(README_TEMPLATE),
            {"$projectContentFolderName$": self._config.artifact.project_content_folder_name},
        )
        path = self.folder / README_TEMPLATE
        self._console.debug(f"generating readme file {path}")
        atomic_write_text(path, content)
        return path

    def generate_specification_file(
        self,
        version: SemanticVersion,
        base_version: SemanticVersion,
        frameworks: Sequence[TargetFramework],
    ) -> Path:
        package = self._config.package
        content = replace_tokens(
            self._template(SPECIFICATION_TEMPLATE),
            {
                "$packageId$": escape(package.id),
                "$version$": version.normalized,
                "$authors$": escape(self._config.general.authors),
                "$gitHubAddress$": escape(package.repository_address),
                "$branch$": escape(package.repository_branch_name),
                "$dependencies$": render_dependencies(
                    frameworks, self._config.base_package.id, base_version
                ),
            },
        )
        path = self.folder / f"{package.id}{Path(SPECIFICATION_TEMPLATE).suffix}"
        self._console.debug(f"generating specification file {path}")
        atomic_write_text(path, content)
        return path

    def generate_library_files(self, frameworks: Sequence[TargetFramework]) -> list[Path]:
        created: list[Path] = []
        for tfm in frameworks:
            folder = self.folder / LIBRARY_FOLDER / tfm.short_folder_name
            self._console.debug(f"generating library file for {tfm} in {folder}")
            folder.mkdir(parents=True, exist_ok=True)
            marker = folder / EMPTY_LIBRARY_FILE
            marker.touch()
            created.append(marker)
        return created

    def generate_build_properties_file(self) -> Path:
        artifact = self._config.artifact
        content = replace_tokens(
            self._template(BUILD_PROPERTIES_TEMPLATE),
            {
                "_PRFX_": artifact.build_property_prefix,
                "$packageContentFolderName$": artifact.package_content_folder_name,
                "$projectContentFolderName$": artifact.project_content_folder_name,
            },
        )
        name = f"{self._config.package.id}{Path(BUILD_PROPERTIES_TEMPLATE).suffix}"
        path = self.folder / artifact.package_build_folder_name / name
        self._console.debug(f"generating build properties file {path}")
        atomic_write_text(path, content)
        return path

    async def copy_content_files(self, reference: str) -> Result[Path, ReleaseError]:
        """Copy the upstream content folder at ``reference`` into the staging folder.

        Every directory level lists its entries, then downloads all files and
        descends into all subdirectories concurrently. The first failure
        cancels the remaining transfers.
        """
        target = self.folder / self._config.artifact.package_content_folder_name
        self._console.debug(f"fetching content files at {reference} into {target}")

        failure: _CopyFailed | None = None
        try:
            await self._copy_folder(target, PurePosixPath(), reference)
        except* _CopyFailed as eg:
            failure = _first_failure(eg)
        if failure is not None:
            return Err(failure.error)
        return Ok(target)

    async def _copy_folder(self, target: Path, relative: PurePosixPath, reference: str) -> None:
        base = PurePosixPath(self._config.base_package.content_folder_path.strip("/"))
        remote = (base / relative).as_posix()
        local = target.joinpath(*relative.parts)
        try:
            local.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise _CopyFailed(
                ReleaseError(kind="staging_failed", message=f"cannot create {local}: {e}")
            ) from e

        self._console.debug(f"enumerating repository folder {remote} into {local}")
        listing = await self._github.list_base_contents(remote, reference)
        if isinstance(listing, Err):
            raise _CopyFailed(listing.error)

        self._console.debug(f"found {len(listing.value)} items in {remote}")
        async with asyncio.TaskGroup() as tg:
            for entry in listing.value:
                match entry.kind:
                    case "file":
                        if entry.download_url is None:
                            raise _CopyFailed(
                                ReleaseError(
                                    kind="staging_failed",
                                    message=f"no download URL for {entry.path}",
                                )
                            )
                        tg.create_task(self._download(entry.download_url, local / entry.name))
                    case "directory":
                        tg.create_task(self._copy_folder(target, relative / entry.name, reference))
                    case _:
                        self._console.debug(f"skipping {entry.path} (not a file or directory)")

    async def _download(self, url: str, dest: Path) -> None:
        self._console.debug(f"downloading {url} to {dest}")
        result = await asyncio.to_thread(self._http.download, url, dest)
        if isinstance(result, Err):
            raise _CopyFailed(
                ReleaseError(
                    kind="staging_failed",
                    message=f"failed to download {dest.name}",
                    hint=str(result.error),
                )
            )

    def copy_asset_files(self) -> list[Path]:
        """Copy packaged assets, keeping their relative layout."""
        copied: list[Path] = []
        for src in sorted(p for p in ASSETS_DIR.rglob("*") if p.is_file()):
            dest = self.folder / src.relative_to(ASSETS_DIR)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dest)
            copied.append(dest)
        return copied

    async def assemble(
        self,
        version: SemanticVersion,
        base_version: SemanticVersion,
        frameworks: Sequence[TargetFramework],
        reference: str,
    ) -> Result[Path, ReleaseError]:
        """Run every generation and copy step; Ok(staging folder)."""
        try:
            folder = self.create_staging_folder(version)
            self.generate_license_file()
            self.generate_readme_file()
            self.generate_specification_file(version, base_version, frameworks)
            self.generate_library_files(frameworks)
            self.generate_build_properties_file()
        except OSError as e:
            return Err(ReleaseError(kind="staging_failed", message=f"cannot write staging files: {e}"))

        copied = await self.copy_content_files(reference)
        if isinstance(copied, Err):
            return copied

        try:
            self.copy_asset_files()
        except OSError as e:
            return Err(ReleaseError(kind="staging_failed", message=f"cannot copy assets: {e}"))
        return Ok(folder)

    def delete_staging_root(self) -> Result[bool, ReleaseError]:
        """Delete the whole staging root; Ok(False) if it did not exist."""
        try:
            deleted = remove_tree(self._root)
        except OSError as e:
            return Err(
                ReleaseError(kind="staging_failed", message=f"cannot delete {self._root}: {e}")
            )
        if deleted:
            self._console.debug(f"deleted staging folder {self._root}")
        return Ok(deleted)
