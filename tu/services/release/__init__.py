"""Release reconciliation and publishing.

Entry point is ``ReleasePipeline``; the gateways it drives live beside it.
"""

from tu.services.release.errors import ReleaseError
from tu.services.release.model import ReleaseWorkItem, RunOptions, RunSummary, WorkItemStage
from tu.services.release.pipeline import ReleasePipeline
from tu.services.release.reconcile import compute_work_list, latest_version
from tu.services.release.semver import SemanticVersion, parse_tag, parse_version, tag_name

__all__ = [
    "ReleaseError",
    "ReleasePipeline",
    "ReleaseWorkItem",
    "RunOptions",
    "RunSummary",
    "SemanticVersion",
    "WorkItemStage",
    "compute_work_list",
    "latest_version",
    "parse_tag",
    "parse_version",
    "tag_name",
]
