from __future__ import annotations

from collections.abc import Iterable

from tu.services.release.semver import ZERO, SemanticVersion


def latest_version(versions: Iterable[SemanticVersion]) -> SemanticVersion:
    """Highest version, or 0.0.0 when nothing has been published yet."""
    return max(versions, default=ZERO)


def compute_work_list(
    target_versions: Iterable[SemanticVersion],
    upstream_versions: Iterable[SemanticVersion],
    limit: int = 0,
) -> list[SemanticVersion]:
    """Upstream versions that still need a release, oldest first.

    Only versions above the latest published target version qualify. Releasing
    in ascending order keeps the release branch history linear. A positive
    ``limit`` keeps the first ``limit`` entries.
    """
    latest = latest_version(target_versions)

    pending = sorted({v for v in upstream_versions if v > latest})
    if limit > 0:
        pending = pending[:limit]
    return pending
