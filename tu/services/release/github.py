"""GitHub access for both repositories involved in a release.

The *package* repository receives commits, tags and releases. The *base
package* repository is only read: its contents are copied into the staging
folder and its tags/releases are used to link release notes upstream.

Everything goes through ``gh api`` so authentication, pagination and
enterprise hosts behave exactly as they do for ``gh`` itself. The configured
token is handed to gh through ``GH_TOKEN``.
"""

from __future__ import annotations

import asyncio
import base64
import json
import os
import time
import urllib.parse
from collections.abc import Callable, Mapping
from pathlib import Path

from tu.core.cache import TimedCache
from tu.core.config import BasePackageManifest, Config, PackageManifest
from tu.core.result import Err, Ok, Result
from tu.core.structured import as_obj_list, as_str_dict, get_str, get_table
from tu.output.console import ConsoleProtocol
from tu.platform.process import run as run_process
from tu.services.release import refs
from tu.services.release.errors import ReleaseError
from tu.services.release.model import EntryKind, GitRef, GitRelease, RepositoryEntry
from tu.services.release.semver import SemanticVersion, release_name, tag_name
from tu.services.release.timeouts import (
    GH_TIMEOUT_SECONDS,
    GH_TREE_TIMEOUT_SECONDS,
    UPSTREAM_CACHE_TTL_SECONDS,
)

FILE_MODE = "100644"

_CONTENT_KINDS: dict[str, EntryKind] = {"file": "file", "dir": "directory"}


def _decode_json_stream(text: str) -> list[object]:
    """Decode concatenated JSON values (``gh api --paginate --jq``)."""
    decoder = json.JSONDecoder()
    out: list[object] = []
    idx = 0
    end = len(text)
    while True:
        while idx < end and text[idx].isspace():
            idx += 1
        if idx >= end:
            return out
        obj, idx = decoder.raw_decode(text, idx)
        out.append(obj)


def _parse_ref(obj: object) -> GitRef | None:
    d = as_str_dict(obj)
    if d is None:
        return None
    ref = get_str(d, "ref")
    target = get_table(d, "object")
    if ref is None or target is None:
        return None
    sha = get_str(target, "sha")
    if sha is None:
        return None
    return GitRef(ref=ref, sha=sha, object_type=get_str(target, "type") or "commit")


def _parse_release(obj: object) -> GitRelease | None:
    d = as_str_dict(obj)
    if d is None:
        return None
    rid = d.get("id")
    tag = get_str(d, "tag_name")
    if not isinstance(rid, int) or tag is None:
        return None
    return GitRelease(id=rid, tag_name=tag, name=get_str(d, "name"), html_url=get_str(d, "html_url"))


def _parse_entry(obj: object) -> RepositoryEntry | None:
    d = as_str_dict(obj)
    if d is None:
        return None
    name = get_str(d, "name")
    path = get_str(d, "path")
    if name is None or path is None:
        return None
    return RepositoryEntry(
        name=name,
        path=path,
        download_url=get_str(d, "download_url"),
        kind=_CONTENT_KINDS.get(get_str(d, "type") or "", "other"),
    )


def collect_tree_files(root: Path) -> list[tuple[str, bytes]]:
    """Every file below ``root`` as (forward-slash relative path, content)."""
    files: list[tuple[str, bytes]] = []
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        files.append((path.relative_to(root).as_posix(), path.read_bytes()))
    return files


class GitHubGateway:
    def __init__(
        self,
        config: Config,
        console: ConsoleProtocol,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._package: PackageManifest = config.package
        self._base: BasePackageManifest = config.base_package
        self._console = console
        self._cwd = cwd
        self._clock = clock

        base_env = dict(os.environ if env is None else env)
        if config.github.token:
            base_env["GH_TOKEN"] = config.github.token
        self._env = base_env

        self._base_releases: TimedCache[list[GitRelease]] = TimedCache(UPSTREAM_CACHE_TTL_SECONDS)
        self._base_tags: TimedCache[list[GitRef]] = TimedCache(UPSTREAM_CACHE_TTL_SECONDS)

    # ------------------------------------------------------------------
    # gh plumbing

    async def _gh(
        self,
        args: list[str],
        *,
        message: str,
        body: object | None = None,
        timeout: float = GH_TIMEOUT_SECONDS,
    ) -> Result[str, ReleaseError]:
        cmd = ["gh", "api", "-H", "Accept: application/vnd.github+json", *args]
        input_text: str | None = None
        if body is not None:
            cmd += ["--input", "-"]
            input_text = json.dumps(body)

        result = await run_process(
            cmd, cwd=self._cwd, env=self._env, input_text=input_text, timeout=timeout
        )
        if isinstance(result, Err):
            return Err(
                ReleaseError(kind="github_failed", message=message, hint=result.error.details)
            )
        return Ok(result.value)

    async def _api_json(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        body: object | None = None,
        message: str,
        timeout: float = GH_TIMEOUT_SECONDS,
    ) -> Result[object, ReleaseError]:
        out = await self._gh(
            ["-X", method, endpoint], message=message, body=body, timeout=timeout
        )
        if isinstance(out, Err):
            return out
        if not out.value.strip():
            return Ok(None)
        try:
            return Ok(json.loads(out.value))
        except json.JSONDecodeError as e:
            return Err(
                ReleaseError(
                    kind="github_failed",
                    message=f"gh api returned invalid JSON: {e}",
                    hint=endpoint,
                )
            )

    async def _api_list(self, endpoint: str, *, message: str) -> Result[list[object], ReleaseError]:
        out = await self._gh(["--paginate", "--jq", ".[]", endpoint], message=message)
        if isinstance(out, Err):
            return out
        try:
            return Ok(_decode_json_stream(out.value))
        except json.JSONDecodeError as e:
            return Err(
                ReleaseError(
                    kind="github_failed",
                    message=f"gh api returned invalid JSON: {e}",
                    hint=endpoint,
                )
            )

    async def _list_refs(self, slug: str, category: str) -> Result[list[GitRef], ReleaseError]:
        items = await self._api_list(
            f"repos/{slug}/git/matching-refs/{category}",
            message=f"failed to list {category} of {slug}",
        )
        if isinstance(items, Err):
            return items
        return Ok([r for r in (_parse_ref(i) for i in items.value) if r is not None])

    async def _list_releases(self, slug: str) -> Result[list[GitRelease], ReleaseError]:
        items = await self._api_list(
            f"repos/{slug}/releases?per_page=100",
            message=f"failed to list releases of {slug}",
        )
        if isinstance(items, Err):
            return items
        return Ok([r for r in (_parse_release(i) for i in items.value) if r is not None])

    async def _list_commit_shas(self, slug: str, sha: str) -> Result[set[str], ReleaseError]:
        items = await self._api_list(
            f"repos/{slug}/commits?sha={sha}&per_page=100",
            message=f"failed to list commits of {slug}@{sha[:7]}",
        )
        if isinstance(items, Err):
            return items
        shas: set[str] = set()
        for item in items.value:
            d = as_str_dict(item)
            if d is None:
                continue
            s = get_str(d, "sha")
            if s is not None:
                shas.add(s)
        return Ok(shas)

    # ------------------------------------------------------------------
    # package repository

    async def find_package_tag(self, version: SemanticVersion) -> Result[str | None, ReleaseError]:
        """Name of the existing tag for ``version`` (case-insensitive), if any."""
        wanted = refs.tag_ref(version)
        self._console.debug(f"checking whether {wanted} exists in {self._package.slug}")

        tags = await self._list_refs(self._package.slug, refs.TAGS_CATEGORY)
        if isinstance(tags, Err):
            return tags

        for t in tags.value:
            if t.ref.lower() == wanted.lower():
                return Ok(refs.tag_name_from_ref(t.ref))
        return Ok(None)

    async def ensure_branch_exists(self) -> Result[None, ReleaseError]:
        """Create the release branch from the protected branch if missing.

        Protected branches are assumed to exist.
        """
        branch = self._package.repository_branch_name
        if refs.is_protected_branch(branch):
            return Ok(None)

        heads = await self._list_refs(self._package.slug, refs.BRANCHES_CATEGORY)
        if isinstance(heads, Err):
            return heads

        wanted = refs.branch_ref(branch)
        if any(h.ref == wanted for h in heads.value):
            return Ok(None)

        protected_refs = {refs.branch_ref(b) for b in refs.PROTECTED_BRANCHES}
        source = next((h for h in heads.value if h.ref in protected_refs), None)
        if source is None:
            return Err(
                ReleaseError(
                    kind="github_failed",
                    message=f"cannot create branch {branch}: no main/master branch in "
                    f"{self._package.slug}",
                )
            )

        self._console.debug(
            f"creating branch {branch} from {refs.branch_name(source.ref)} ({source.sha[:7]})"
        )
        created = await self._api_json(
            f"repos/{self._package.slug}/git/refs",
            method="POST",
            body={"ref": wanted, "sha": source.sha},
            message=f"failed to create branch {branch}",
        )
        if isinstance(created, Err):
            return created
        return Ok(None)

    async def create_commit(self, staging: Path, message: str) -> Result[str, ReleaseError]:
        """Commit every file of ``staging`` on the release branch.

        The tree contains exactly the staged files. The branch is then moved
        to the new commit without force, so a concurrent push makes this fail.

        Returns:
            Ok(sha) of the new commit.
        """
        slug = self._package.slug
        branch = self._package.repository_branch_name

        files = await asyncio.to_thread(collect_tree_files, staging)

        tree: list[dict[str, str]] = []
        for rel, data in files:
            try:
                tree.append(
                    {"path": rel, "mode": FILE_MODE, "type": "blob", "content": data.decode("utf-8")}
                )
                continue
            except UnicodeDecodeError:
                pass

            blob = await self._api_json(
                f"repos/{slug}/git/blobs",
                method="POST",
                body={"content": base64.b64encode(data).decode("ascii"), "encoding": "base64"},
                message=f"failed to upload blob: {rel}",
            )
            if isinstance(blob, Err):
                return blob
            blob_sha = get_str(as_str_dict(blob.value) or {}, "sha")
            if blob_sha is None:
                return Err(ReleaseError(kind="github_failed", message=f"missing blob sha: {rel}"))
            tree.append({"path": rel, "mode": FILE_MODE, "type": "blob", "sha": blob_sha})

        self._console.debug(
            f"creating commit with {len(tree)} files on branch {branch}: {message!r}"
        )

        tree_resp = await self._api_json(
            f"repos/{slug}/git/trees",
            method="POST",
            body={"tree": tree},
            message="failed to create tree",
            timeout=GH_TREE_TIMEOUT_SECONDS,
        )
        if isinstance(tree_resp, Err):
            return tree_resp
        tree_sha = get_str(as_str_dict(tree_resp.value) or {}, "sha")
        if tree_sha is None:
            return Err(ReleaseError(kind="github_failed", message="missing tree sha"))

        head = await self._api_json(
            f"repos/{slug}/git/ref/{refs.branch_ref_short(branch)}",
            message=f"failed to read branch {branch}",
        )
        if isinstance(head, Err):
            return head
        head_ref = _parse_ref(head.value)
        if head_ref is None:
            return Err(ReleaseError(kind="github_failed", message=f"missing head of {branch}"))

        commit = await self._api_json(
            f"repos/{slug}/git/commits",
            method="POST",
            body={"message": message, "tree": tree_sha, "parents": [head_ref.sha]},
            message="failed to create commit",
        )
        if isinstance(commit, Err):
            return commit
        commit_sha = get_str(as_str_dict(commit.value) or {}, "sha")
        if commit_sha is None:
            return Err(ReleaseError(kind="github_failed", message="missing commit sha"))

        moved = await self._api_json(
            f"repos/{slug}/git/refs/{refs.branch_ref_short(branch)}",
            method="PATCH",
            body={"sha": commit_sha, "force": False},
            message=f"failed to update branch {branch}",
        )
        if isinstance(moved, Err):
            return moved

        return Ok(commit_sha)

    async def create_release(
        self, version: SemanticVersion, notes: str
    ) -> Result[str | None, ReleaseError]:
        """Create the tagged release for ``version`` on the release branch.

        Returns:
            Ok(html_url) of the release (None if GitHub did not return one).
        """
        tag = tag_name(version)
        name = release_name(version)
        self._console.debug(f"creating release {name} with tag {tag}")

        created = await self._api_json(
            f"repos/{self._package.slug}/releases",
            method="POST",
            body={
                "tag_name": tag,
                "target_commitish": refs.branch_ref(self._package.repository_branch_name),
                "name": name,
                "body": notes,
                "prerelease": version.is_prerelease,
            },
            message=f"failed to create release {tag}",
        )
        if isinstance(created, Err):
            return created
        return Ok(get_str(as_str_dict(created.value) or {}, "html_url"))

    async def delete_branch_and_releases(self) -> Result[bool, ReleaseError]:
        """Delete the release branch and every tag/release pointing into it.

        Returns:
            Ok(False) without touching anything if the branch is protected,
            Ok(True) once deleted (or if the branch does not exist).
        """
        branch = self._package.repository_branch_name
        if refs.is_protected_branch(branch):
            self._console.warning(f"will not delete protected branch {branch}")
            return Ok(False)

        slug = self._package.slug
        self._console.debug(f"deleting branch {branch} and its releases in {slug}")

        heads = await self._list_refs(slug, refs.BRANCHES_CATEGORY)
        if isinstance(heads, Err):
            return heads
        tags = await self._list_refs(slug, refs.TAGS_CATEGORY)
        if isinstance(tags, Err):
            return tags
        releases = await self._list_releases(slug)
        if isinstance(releases, Err):
            return releases

        wanted = refs.branch_ref(branch)
        head = next((h for h in heads.value if h.ref == wanted), None)
        if head is None:
            return Ok(True)

        history = await self._list_commit_shas(slug, head.sha)
        if isinstance(history, Err):
            return history

        by_tag = {r.tag_name: r for r in releases.value}
        for tag in tags.value:
            if tag.object_type != "commit" or tag.sha not in history.value:
                continue

            name = refs.tag_name_from_ref(tag.ref)
            release = by_tag.get(name)
            if release is not None:
                self._console.debug(f"deleting release {release.name or name}")
                deleted = await self._api_json(
                    f"repos/{slug}/releases/{release.id}",
                    method="DELETE",
                    message=f"failed to delete release {name}",
                )
                if isinstance(deleted, Err):
                    return deleted

            self._console.debug(f"deleting tag {name}")
            deleted = await self._api_json(
                f"repos/{slug}/git/refs/{refs.tag_ref_short(name)}",
                method="DELETE",
                message=f"failed to delete tag {name}",
            )
            if isinstance(deleted, Err):
                return deleted

        self._console.debug(f"deleting branch {branch}")
        deleted = await self._api_json(
            f"repos/{slug}/git/refs/{refs.branch_ref_short(branch)}",
            method="DELETE",
            message=f"failed to delete branch {branch}",
        )
        if isinstance(deleted, Err):
            return deleted
        return Ok(True)

    # ------------------------------------------------------------------
    # base package repository

    async def list_base_contents(
        self, folder: str, reference: str
    ) -> Result[list[RepositoryEntry], ReleaseError]:
        """Entries of ``folder`` in the base repository at ``reference``."""
        self._console.debug(f"fetching contents of {folder} at {reference}")

        path = urllib.parse.quote(folder.strip("/"), safe="/")
        ref = urllib.parse.quote(reference, safe="")
        obj = await self._api_json(
            f"repos/{self._base.slug}/contents/{path}?ref={ref}",
            message=f"failed to list {self._base.slug}/{folder} at {reference}",
        )
        if isinstance(obj, Err):
            return obj

        raw = as_obj_list(obj.value)
        if raw is None:
            # A path pointing at a single file returns an object.
            raw = [obj.value]
        return Ok([e for e in (_parse_entry(i) for i in raw) if e is not None])

    async def _cached_base_releases(self) -> Result[list[GitRelease], ReleaseError]:
        return await self._base_releases.get_or_refresh(
            self._clock(), lambda: self._list_releases(self._base.slug)
        )

    async def _cached_base_tags(self) -> Result[list[GitRef], ReleaseError]:
        return await self._base_tags.get_or_refresh(
            self._clock(), lambda: self._list_refs(self._base.slug, refs.TAGS_CATEGORY)
        )

    async def resolve_base_release_url(self, reference: str) -> Result[str | None, ReleaseError]:
        """URL of the base package release for a tag reference or commit SHA."""
        self._console.debug(f"resolving base package release for {reference}")

        releases = await self._cached_base_releases()
        if isinstance(releases, Err):
            return releases

        name: str | None = refs.tag_name_from_ref(reference) if refs.is_tag_ref(reference) else None
        if name is None:
            tags = await self._cached_base_tags()
            if isinstance(tags, Err):
                return tags
            tag = next(
                (t for t in tags.value if t.object_type == "commit" and t.sha == reference), None
            )
            if tag is None:
                return Ok(None)
            name = refs.tag_name_from_ref(tag.ref)

        release = next((r for r in releases.value if r.tag_name == name), None)
        return Ok(release.html_url if release is not None else None)
