"""Read-only access to a NuGet v3 feed.

Only two resources of the protocol are used, both from the flat container
(``PackageBaseAddress/3.0.0``):

    {base}{id}/index.json                  -> {"versions": [...]}
    {base}{id}/{version}/{id}.{version}.nupkg

Ids and versions are lowercased in these URLs. The service index is read
once per registry instance.
"""

from __future__ import annotations

import asyncio
import io
import zipfile
import xml.etree.ElementTree as ET

from tu.core.result import Err, Ok, Result
from tu.core.structured import as_obj_list, as_str_dict, get_list, get_str
from tu.output.console import ConsoleProtocol
from tu.platform.http import HttpClient, HttpError
from tu.services.release.errors import ReleaseError
from tu.services.release.frameworks import TargetFramework
from tu.services.release.model import PackageSpecData
from tu.services.release.semver import SemanticVersion, parse_version

PACKAGE_BASE_ADDRESS = "PackageBaseAddress/3.0.0"


def find_package_base_address(index: object) -> str | None:
    """Flat container URL from a service index document (always ends with '/')."""
    d = as_str_dict(index)
    if d is None:
        return None
    for item in as_obj_list(d.get("resources")) or []:
        res = as_str_dict(item)
        if res is None or get_str(res, "@type") != PACKAGE_BASE_ADDRESS:
            continue
        url = get_str(res, "@id")
        if url:
            return url if url.endswith("/") else url + "/"
    return None


def parse_versions(index: object) -> list[SemanticVersion]:
    """Versions listed in a flat container ``index.json`` (unparsable ones skipped)."""
    d = as_str_dict(index)
    if d is None:
        return []
    out: list[SemanticVersion] = []
    for raw in get_list(d, "versions") or []:
        if not isinstance(raw, str):
            continue
        v = parse_version(raw)
        if v is not None:
            out.append(v)
    return out


def read_package_spec(nupkg: bytes) -> PackageSpecData:
    """Extract repository commit and dependency target frameworks from a .nupkg.

    Raises:
        ValueError: Not a zip archive, no .nuspec at the root, or invalid XML.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(nupkg)) as zf:
            names = [n for n in zf.namelist() if "/" not in n and n.lower().endswith(".nuspec")]
            if not names:
                raise ValueError("package has no .nuspec at its root")
            xml = zf.read(names[0])
    except zipfile.BadZipFile as e:
        raise ValueError(f"not a valid package archive: {e}") from e

    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise ValueError(f"invalid .nuspec: {e}") from e

    metadata = root.find("{*}metadata")
    if metadata is None:
        raise ValueError("invalid .nuspec: no <metadata> element")

    commit_id: str | None = None
    repository = metadata.find("{*}repository")
    if repository is not None:
        commit_id = (repository.get("commit") or "").strip() or None

    frameworks: list[TargetFramework] = []
    for group in metadata.findall("{*}dependencies/{*}group"):
        moniker = (group.get("targetFramework") or "").strip()
        if moniker:
            frameworks.append(TargetFramework.parse(moniker))

    return PackageSpecData(commit_id=commit_id, target_frameworks=tuple(frameworks))


class NuGetRegistry:
    def __init__(self, source: str, http: HttpClient, console: ConsoleProtocol) -> None:
        self._source = source
        self._http = http
        self._console = console
        self._base_address: str | None = None

    def _registry_error(self, message: str, error: HttpError) -> ReleaseError:
        return ReleaseError(kind="registry_failed", message=message, hint=str(error))

    async def _package_base_address(self) -> Result[str, ReleaseError]:
        if self._base_address is not None:
            return Ok(self._base_address)

        index = await asyncio.to_thread(self._http.get_json, self._source)
        if isinstance(index, Err):
            return Err(self._registry_error("failed to read package source index", index.error))

        base = find_package_base_address(index.value)
        if base is None:
            return Err(
                ReleaseError(
                    kind="registry_failed",
                    message=f"package source has no {PACKAGE_BASE_ADDRESS} resource",
                    hint=self._source,
                )
            )
        self._base_address = base
        return Ok(base)

    async def list_versions(self, package_id: str) -> Result[list[SemanticVersion], ReleaseError]:
        """Every published version of ``package_id``, prereleases included."""
        self._console.debug(f"fetching versions of package {package_id}")

        base = await self._package_base_address()
        if isinstance(base, Err):
            return base

        url = f"{base.value}{package_id.lower()}/index.json"
        index = await asyncio.to_thread(self._http.get_json, url)
        if isinstance(index, Err):
            if index.error.not_found:
                return Ok([])
            return Err(self._registry_error(f"failed to list versions of {package_id}", index.error))
        return Ok(parse_versions(index.value))

    async def get_package_spec_data(
        self, package_id: str, version: SemanticVersion
    ) -> Result[PackageSpecData, ReleaseError]:
        """Download one package version and read its embedded metadata."""
        self._console.debug(f"fetching target frameworks of {package_id} {version.normalized}")

        base = await self._package_base_address()
        if isinstance(base, Err):
            return base

        lower_id = package_id.lower()
        lower_version = version.normalized.lower()
        url = f"{base.value}{lower_id}/{lower_version}/{lower_id}.{lower_version}.nupkg"

        data = await asyncio.to_thread(self._http.get_bytes, url)
        if isinstance(data, Err):
            return Err(
                self._registry_error(
                    f"failed to download package {package_id} version {version.normalized}",
                    data.error,
                )
            )

        try:
            spec = await asyncio.to_thread(read_package_spec, data.value)
        except ValueError as e:
            return Err(
                ReleaseError(
                    kind="metadata_failed",
                    message=f"cannot read {package_id} {version.normalized}: {e}",
                )
            )
        return Ok(spec)
