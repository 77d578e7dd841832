from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering


_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_NUMERIC_RE = re.compile(r"^(0|[1-9]\d*)$")

TAG_PREFIX = "v"


def _label_key(label: str) -> tuple[int, int, str]:
    # Numeric identifiers sort before alphanumeric ones.
    if _NUMERIC_RE.match(label):
        return (0, int(label), "")
    return (1, 0, label)


@total_ordering
@dataclass(frozen=True, slots=True)
class SemanticVersion:
    major: int
    minor: int
    patch: int
    release_labels: tuple[str, ...] = ()
    metadata: str | None = field(default=None, compare=False)

    @classmethod
    def parse(cls, text: str) -> SemanticVersion | None:
        m = _SEMVER_RE.match(text.strip())
        if m is None:
            return None
        labels = tuple(m.group(4).split(".")) if m.group(4) else ()
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)), labels, m.group(5))

    @property
    def is_prerelease(self) -> bool:
        return bool(self.release_labels)

    @property
    def release(self) -> str:
        return ".".join(self.release_labels)

    @property
    def normalized(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.release_labels:
            return f"{base}-{self.release}"
        return base

    def to_full_string(self) -> str:
        if self.metadata:
            return f"{self.normalized}+{self.metadata}"
        return self.normalized

    def with_release_label(self, label: str) -> SemanticVersion:
        """Append ``label`` to the existing release label (metadata is dropped)."""
        combined = ".".join(s for s in (self.release, label) if s)
        labels = tuple(combined.split(".")) if combined else ()
        return SemanticVersion(self.major, self.minor, self.patch, labels)

    def _precedence(self) -> tuple[int, int, int, int, tuple[tuple[int, int, str], ...]]:
        # A version without release labels ranks above any prerelease of it.
        return (
            self.major,
            self.minor,
            self.patch,
            0 if self.release_labels else 1,
            tuple(_label_key(x) for x in self.release_labels),
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._precedence() < other._precedence()

    def __str__(self) -> str:
        return self.to_full_string()


ZERO = SemanticVersion(0, 0, 0)


def parse_version(text: str) -> SemanticVersion | None:
    return SemanticVersion.parse(text)


def tag_name(version: SemanticVersion) -> str:
    return f"{TAG_PREFIX}{version.normalized}"


def parse_tag(tag: str) -> SemanticVersion | None:
    if not tag.startswith(TAG_PREFIX):
        return None
    return SemanticVersion.parse(tag[len(TAG_PREFIX) :])


def release_name(version: SemanticVersion) -> str:
    return version.normalized
