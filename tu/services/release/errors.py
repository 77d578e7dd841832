from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


ReleaseErrorKind = Literal[
    "invalid_options",
    "invalid_input",
    "tag_exists",
    "cleanup_failed",
    "github_failed",
    "registry_failed",
    "metadata_failed",
    "staging_failed",
    "pack_failed",
    "push_failed",
    "delete_failed",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    @property
    def is_informational(self) -> bool:
        """The run stopped on purpose rather than because something broke."""
        return self.kind == "tag_exists"
