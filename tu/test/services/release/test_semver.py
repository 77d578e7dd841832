"""Tests for tu.services.release.semver module."""

from __future__ import annotations

import pytest

from tu.services.release.semver import (
    ZERO,
    SemanticVersion,
    parse_tag,
    parse_version,
    release_name,
    tag_name,
)


def v(text: str) -> SemanticVersion:
    parsed = parse_version(text)
    assert parsed is not None, text
    return parsed


class TestParse:
    def test_release(self) -> None:
        assert v("4.5.0") == SemanticVersion(4, 5, 0)

    def test_prerelease_and_metadata(self) -> None:
        version = v("4.5.0-beta.2+sha.abc")
        assert version.release_labels == ("beta", "2")
        assert version.metadata == "sha.abc"
        assert version.is_prerelease

    @pytest.mark.parametrize("text", ["", "4.5", "v4.5.0", "04.5.0", "4.5.0-", "4.5.0+"])
    def test_invalid(self, text: str) -> None:
        assert parse_version(text) is None


class TestFormatting:
    def test_normalized_drops_metadata(self) -> None:
        assert v("1.2.3-rc.1+build.5").normalized == "1.2.3-rc.1"

    def test_full_string_keeps_metadata(self) -> None:
        assert str(v("1.2.3-rc.1+build.5")) == "1.2.3-rc.1+build.5"

    def test_release_name_is_normalized(self) -> None:
        assert release_name(v("1.2.3+meta")) == "1.2.3"


class TestPrecedence:
    def test_prerelease_sorts_before_release(self) -> None:
        assert v("1.0.0-alpha") < v("1.0.0")

    def test_semver_spec_ordering(self) -> None:
        ordered = [
            "1.0.0-alpha",
            "1.0.0-alpha.1",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
            "1.0.0-beta.2",
            "1.0.0-beta.11",
            "1.0.0-rc.1",
            "1.0.0",
            "1.0.1",
            "1.1.0",
            "2.0.0",
        ]
        versions = [v(t) for t in ordered]
        assert sorted(reversed(versions)) == versions

    def test_metadata_ignored_for_equality(self) -> None:
        assert v("1.0.0+a") == v("1.0.0+b")
        assert len({v("1.0.0+a"), v("1.0.0+b")}) == 1

    def test_zero(self) -> None:
        assert ZERO < v("0.0.1-alpha")


class TestWithReleaseLabel:
    def test_appends_to_release_version(self) -> None:
        assert v("4.5.0").with_release_label("beta.1700000000") == v("4.5.0-beta.1700000000")

    def test_appends_to_existing_label(self) -> None:
        assert v("4.5.0-rc.1").with_release_label("beta.7").normalized == "4.5.0-rc.1.beta.7"

    def test_drops_metadata(self) -> None:
        assert v("4.5.0+meta").with_release_label("beta.1").metadata is None

    def test_empty_label_keeps_version(self) -> None:
        assert v("4.5.0").with_release_label("") == v("4.5.0")

    def test_core_numbers_unchanged(self) -> None:
        target = v("7.3.2-preview").with_release_label("beta.1")
        assert (target.major, target.minor, target.patch) == (7, 3, 2)


class TestTags:
    def test_tag_name(self) -> None:
        assert tag_name(v("4.5.0-beta.1")) == "v4.5.0-beta.1"

    def test_tag_name_drops_metadata(self) -> None:
        assert tag_name(v("4.5.0+sha.abc")) == "v4.5.0"
        assert tag_name(v("2.1.0-rc.1+build.9")) == "v2.1.0-rc.1"

    @pytest.mark.parametrize("text", ["1.0.0", "4.5.0-beta.1700000000", "2.1.0-rc.1+build.9"])
    def test_round_trip(self, text: str) -> None:
        version = v(text)
        parsed = parse_tag(tag_name(version))
        assert parsed == version
        assert parsed is not None and parsed.metadata is None

    def test_parse_tag_requires_prefix(self) -> None:
        assert parse_tag("4.5.0") is None
