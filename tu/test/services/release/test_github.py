"""Tests for tu.services.release.github module."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path

import pytest

from tu.core.result import Err, Ok, Result
from tu.output.console import MockConsole
from tu.platform.process import ProcessError
from tu.services.release import github as github_mod
from tu.services.release.github import GitHubGateway, collect_tree_files

from ._fakes import make_config, ver


HEADS = "repos/acme/theming/git/matching-refs/heads"
TAGS = "repos/acme/theming/git/matching-refs/tags"
RELEASES = "repos/acme/theming/releases?per_page=100"
BASE_TAGS = "repos/radzenhq/radzen-blazor/git/matching-refs/tags"
BASE_RELEASES = "repos/radzenhq/radzen-blazor/releases?per_page=100"


def _stream(*items: object) -> str:
    # What `gh api --paginate --jq ".[]"` prints: one JSON value per line.
    return "\n".join(json.dumps(i) for i in items) + "\n"


def _ref(ref: str, sha: str, object_type: str = "commit") -> dict[str, object]:
    return {"ref": ref, "object": {"sha": sha, "type": object_type}}


class FakeGh:
    """Answers `gh api` invocations keyed by (method, endpoint)."""

    def __init__(self) -> None:
        self.responses: dict[tuple[str, str], Result[str, ProcessError]] = {}
        self.calls: list[tuple[str, str, object | None]] = []
        self.envs: list[Mapping[str, str] | None] = []

    def on(self, method: str, endpoint: str, body: object | str) -> None:
        text = body if isinstance(body, str) else json.dumps(body)
        self.responses[(method, endpoint)] = Ok(text)

    def fail(self, method: str, endpoint: str, stderr: str) -> None:
        self.responses[(method, endpoint)] = Err(
            ProcessError(command=("gh", "api", endpoint), returncode=1, stdout="", stderr=stderr)
        )

    def mutations(self) -> list[tuple[str, str]]:
        return [(m, e) for m, e, _ in self.calls if m != "GET"]

    def body(self, method: str, endpoint: str) -> object:
        for m, e, b in self.calls:
            if (m, e) == (method, endpoint):
                return b
        raise AssertionError(f"no call {method} {endpoint}")

    async def __call__(
        self,
        cmd: list[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        *,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        del cwd, timeout
        assert cmd[:2] == ["gh", "api"]
        if "-X" in cmd:
            i = cmd.index("-X")
            method, endpoint = cmd[i + 1], cmd[i + 2]
        else:
            method, endpoint = "GET", cmd[-1]
        body = json.loads(input_text) if input_text is not None else None
        self.calls.append((method, endpoint, body))
        self.envs.append(env)
        if (method, endpoint) not in self.responses:
            raise AssertionError(f"unexpected gh api call: {method} {endpoint}")
        return self.responses[(method, endpoint)]


class Clock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def gh(monkeypatch: pytest.MonkeyPatch) -> FakeGh:
    fake = FakeGh()
    monkeypatch.setattr(github_mod, "run_process", fake)
    return fake


def _gateway(branch: str = "releases", clock: Clock | None = None) -> GitHubGateway:
    return GitHubGateway(
        make_config(branch=branch),
        MockConsole(),
        env={"PATH": "/usr/bin"},
        clock=clock or Clock(),
    )


class TestFindPackageTag:
    @pytest.mark.asyncio
    async def test_found_case_insensitively(self, gh: FakeGh) -> None:
        gh.on("GET", TAGS, _stream(_ref("refs/tags/V4.5.0-Beta.1", "a1")))

        result = await _gateway().find_package_tag(ver("4.5.0-beta.1"))

        assert result == Ok("V4.5.0-Beta.1")

    @pytest.mark.asyncio
    async def test_not_found(self, gh: FakeGh) -> None:
        gh.on("GET", TAGS, _stream(_ref("refs/tags/v4.4.0", "a1")))

        assert await _gateway().find_package_tag(ver("4.5.0")) == Ok(None)

    @pytest.mark.asyncio
    async def test_token_passed_through_environment(self, gh: FakeGh) -> None:
        gh.on("GET", TAGS, "")

        await _gateway().find_package_tag(ver("4.5.0"))

        env = gh.envs[0]
        assert env is not None
        assert env["GH_TOKEN"] == "gh-token"
        assert env["PATH"] == "/usr/bin"

    @pytest.mark.asyncio
    async def test_gh_failure_is_error(self, gh: FakeGh) -> None:
        gh.fail("GET", TAGS, "HTTP 401: Bad credentials")

        result = await _gateway().find_package_tag(ver("4.5.0"))

        assert isinstance(result, Err)
        assert result.error.kind == "github_failed"
        assert result.error.hint == "HTTP 401: Bad credentials"


class TestEnsureBranchExists:
    @pytest.mark.asyncio
    async def test_protected_branch_assumed_present(self, gh: FakeGh) -> None:
        assert await _gateway(branch="main").ensure_branch_exists() == Ok(None)
        assert gh.calls == []

    @pytest.mark.asyncio
    async def test_existing_branch(self, gh: FakeGh) -> None:
        gh.on("GET", HEADS, _stream(_ref("refs/heads/main", "m1"), _ref("refs/heads/releases", "r1")))

        assert await _gateway().ensure_branch_exists() == Ok(None)
        assert gh.mutations() == []

    @pytest.mark.asyncio
    async def test_created_from_master(self, gh: FakeGh) -> None:
        gh.on("GET", HEADS, _stream(_ref("refs/heads/master", "m1"), _ref("refs/heads/dev", "d1")))
        gh.on("POST", "repos/acme/theming/git/refs", {"ref": "refs/heads/releases"})

        assert await _gateway().ensure_branch_exists() == Ok(None)
        assert gh.body("POST", "repos/acme/theming/git/refs") == {
            "ref": "refs/heads/releases",
            "sha": "m1",
        }

    @pytest.mark.asyncio
    async def test_no_protected_branch(self, gh: FakeGh) -> None:
        gh.on("GET", HEADS, _stream(_ref("refs/heads/dev", "d1")))

        result = await _gateway().ensure_branch_exists()

        assert isinstance(result, Err)
        assert gh.mutations() == []


class TestCreateCommit:
    @pytest.mark.asyncio
    async def test_full_sequence(self, gh: FakeGh, tmp_path: Path) -> None:
        (tmp_path / "lib" / "net8.0").mkdir(parents=True)
        (tmp_path / "lib" / "net8.0" / "_._").write_bytes(b"")
        (tmp_path / "LICENSE").write_text("MIT", encoding="utf-8")
        (tmp_path / "images").mkdir()
        (tmp_path / "images" / "icon.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe")

        gh.on("POST", "repos/acme/theming/git/blobs", {"sha": "blob1"})
        gh.on("POST", "repos/acme/theming/git/trees", {"sha": "tree1"})
        gh.on("GET", "repos/acme/theming/git/ref/heads/releases", _ref("refs/heads/releases", "head1"))
        gh.on("POST", "repos/acme/theming/git/commits", {"sha": "commit1"})
        gh.on("PATCH", "repos/acme/theming/git/refs/heads/releases", _ref("refs/heads/releases", "commit1"))

        result = await _gateway().create_commit(tmp_path, "Update to 4.5.0")

        assert result == Ok("commit1")
        assert [e for _, e, _ in gh.calls] == [
            "repos/acme/theming/git/blobs",
            "repos/acme/theming/git/trees",
            "repos/acme/theming/git/ref/heads/releases",
            "repos/acme/theming/git/commits",
            "repos/acme/theming/git/refs/heads/releases",
        ]

        tree = gh.body("POST", "repos/acme/theming/git/trees")
        assert isinstance(tree, dict)
        entries = {e["path"]: e for e in tree["tree"]}
        assert set(entries) == {"LICENSE", "images/icon.png", "lib/net8.0/_._"}
        assert entries["LICENSE"]["content"] == "MIT"
        assert entries["images/icon.png"]["sha"] == "blob1"
        assert all(e["mode"] == "100644" for e in entries.values())

        assert gh.body("POST", "repos/acme/theming/git/commits") == {
            "message": "Update to 4.5.0",
            "tree": "tree1",
            "parents": ["head1"],
        }
        assert gh.body("PATCH", "repos/acme/theming/git/refs/heads/releases") == {
            "sha": "commit1",
            "force": False,
        }

    @pytest.mark.asyncio
    async def test_tree_failure_stops(self, gh: FakeGh, tmp_path: Path) -> None:
        (tmp_path / "LICENSE").write_text("MIT", encoding="utf-8")
        gh.fail("POST", "repos/acme/theming/git/trees", "HTTP 422")

        result = await _gateway().create_commit(tmp_path, "msg")

        assert isinstance(result, Err)
        assert gh.mutations() == [("POST", "repos/acme/theming/git/trees")]


class TestCreateRelease:
    @pytest.mark.asyncio
    async def test_prerelease(self, gh: FakeGh) -> None:
        gh.on("POST", "repos/acme/theming/releases", {"html_url": "https://x/r/1"})

        result = await _gateway().create_release(ver("4.5.0-beta.17"), "notes")

        assert result == Ok("https://x/r/1")
        assert gh.body("POST", "repos/acme/theming/releases") == {
            "tag_name": "v4.5.0-beta.17",
            "target_commitish": "refs/heads/releases",
            "name": "4.5.0-beta.17",
            "body": "notes",
            "prerelease": True,
        }

    @pytest.mark.asyncio
    async def test_release_is_not_prerelease(self, gh: FakeGh) -> None:
        gh.on("POST", "repos/acme/theming/releases", {"html_url": "https://x/r/2"})

        await _gateway().create_release(ver("4.5.0"), "notes")

        body = gh.body("POST", "repos/acme/theming/releases")
        assert isinstance(body, dict)
        assert body["prerelease"] is False


class TestDeleteBranchAndReleases:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("branch", ["main", "master"])
    async def test_protected_branch_refused(self, gh: FakeGh, branch: str) -> None:
        result = await _gateway(branch=branch).delete_branch_and_releases()

        assert result == Ok(False)
        assert gh.calls == []

    @pytest.mark.asyncio
    async def test_deletes_reachable_tags_and_releases(self, gh: FakeGh) -> None:
        gh.on("GET", HEADS, _stream(_ref("refs/heads/main", "m0"), _ref("refs/heads/releases", "c2")))
        gh.on(
            "GET",
            TAGS,
            _stream(
                _ref("refs/tags/v1.0.0", "c1"),
                _ref("refs/tags/v1.1.0", "c2"),
                _ref("refs/tags/v0.9.0", "m0"),
                _ref("refs/tags/annotated", "t1", "tag"),
            ),
        )
        gh.on(
            "GET",
            RELEASES,
            _stream(
                {"id": 11, "tag_name": "v1.0.0", "name": "1.0.0"},
                {"id": 9, "tag_name": "v0.9.0", "name": "0.9.0"},
            ),
        )
        gh.on("GET", "repos/acme/theming/commits?sha=c2&per_page=100", _stream({"sha": "c2"}, {"sha": "c1"}))
        gh.on("DELETE", "repos/acme/theming/releases/11", "")
        gh.on("DELETE", "repos/acme/theming/git/refs/tags/v1.0.0", "")
        gh.on("DELETE", "repos/acme/theming/git/refs/tags/v1.1.0", "")
        gh.on("DELETE", "repos/acme/theming/git/refs/heads/releases", "")

        result = await _gateway().delete_branch_and_releases()

        assert result == Ok(True)
        assert gh.mutations() == [
            ("DELETE", "repos/acme/theming/releases/11"),
            ("DELETE", "repos/acme/theming/git/refs/tags/v1.0.0"),
            ("DELETE", "repos/acme/theming/git/refs/tags/v1.1.0"),
            ("DELETE", "repos/acme/theming/git/refs/heads/releases"),
        ]

    @pytest.mark.asyncio
    async def test_missing_branch_is_clean(self, gh: FakeGh) -> None:
        gh.on("GET", HEADS, _stream(_ref("refs/heads/main", "m0")))
        gh.on("GET", TAGS, "")
        gh.on("GET", RELEASES, "")

        assert await _gateway().delete_branch_and_releases() == Ok(True)
        assert gh.mutations() == []


class TestListBaseContents:
    @pytest.mark.asyncio
    async def test_entries(self, gh: FakeGh) -> None:
        gh.on(
            "GET",
            "repos/radzenhq/radzen-blazor/contents/Radzen.Blazor/themes?ref=refs%2Ftags%2Fv4.5.0",
            [
                {"name": "_base.scss", "path": "Radzen.Blazor/themes/_base.scss",
                 "download_url": "https://raw/_base.scss", "type": "file"},
                {"name": "components", "path": "Radzen.Blazor/themes/components",
                 "download_url": None, "type": "dir"},
                {"name": "lib", "path": "Radzen.Blazor/themes/lib",
                 "download_url": None, "type": "submodule"},
            ],
        )

        result = await _gateway().list_base_contents("Radzen.Blazor/themes", "refs/tags/v4.5.0")

        assert isinstance(result, Ok)
        assert [(e.name, e.kind) for e in result.value] == [
            ("_base.scss", "file"),
            ("components", "directory"),
            ("lib", "other"),
        ]
        assert result.value[0].download_url == "https://raw/_base.scss"


class TestResolveBaseReleaseUrl:
    def _setup(self, gh: FakeGh) -> None:
        gh.on(
            "GET",
            BASE_RELEASES,
            _stream({"id": 1, "tag_name": "v4.5.0", "name": "4.5.0", "html_url": "https://rel/4.5.0"}),
        )
        gh.on(
            "GET",
            BASE_TAGS,
            _stream(_ref("refs/tags/v4.5.0", "sha450"), _ref("refs/tags/v4.4.0", "sha440", "tag")),
        )

    @pytest.mark.asyncio
    async def test_tag_reference(self, gh: FakeGh) -> None:
        self._setup(gh)

        result = await _gateway().resolve_base_release_url("refs/tags/v4.5.0")

        assert result == Ok("https://rel/4.5.0")
        assert [e for _, e, _ in gh.calls] == [BASE_RELEASES]

    @pytest.mark.asyncio
    async def test_commit_sha(self, gh: FakeGh) -> None:
        self._setup(gh)

        assert await _gateway().resolve_base_release_url("sha450") == Ok("https://rel/4.5.0")

    @pytest.mark.asyncio
    async def test_annotated_tag_sha_not_matched(self, gh: FakeGh) -> None:
        self._setup(gh)

        assert await _gateway().resolve_base_release_url("sha440") == Ok(None)

    @pytest.mark.asyncio
    async def test_upstream_lists_cached_for_an_hour(self, gh: FakeGh) -> None:
        self._setup(gh)
        clock = Clock()
        gateway = _gateway(clock=clock)

        await gateway.resolve_base_release_url("sha450")
        clock.now += 3599
        await gateway.resolve_base_release_url("sha450")
        assert len(gh.calls) == 2

        clock.now += 1
        await gateway.resolve_base_release_url("sha450")
        assert len(gh.calls) == 4


class TestCollectTreeFiles:
    def test_relative_posix_paths(self, tmp_path: Path) -> None:
        (tmp_path / "a" / "b").mkdir(parents=True)
        (tmp_path / "a" / "b" / "c.txt").write_text("c", encoding="utf-8")
        (tmp_path / "z.txt").write_text("z", encoding="utf-8")

        assert collect_tree_files(tmp_path) == [("a/b/c.txt", b"c"), ("z.txt", b"z")]
