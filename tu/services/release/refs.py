from __future__ import annotations

from tu.services.release.semver import SemanticVersion, tag_name


RELEASES_PATH = "releases"

ROOT_NAMESPACE = "refs"
BRANCHES_CATEGORY = "heads"
BRANCHES_NAMESPACE = f"{ROOT_NAMESPACE}/{BRANCHES_CATEGORY}"
TAGS_CATEGORY = "tags"
TAGS_NAMESPACE = f"{ROOT_NAMESPACE}/{TAGS_CATEGORY}"

PROTECTED_BRANCHES: tuple[str, ...] = ("main", "master")


def is_protected_branch(name: str) -> bool:
    return name in PROTECTED_BRANCHES


def branch_ref(name: str) -> str:
    return f"{BRANCHES_NAMESPACE}/{name}"


def branch_ref_short(name: str) -> str:
    """``heads/<name>``, the form used in git refs API paths."""
    return f"{BRANCHES_CATEGORY}/{name}"


def is_branch_ref(ref: str) -> bool:
    return ref.lower().startswith(f"{BRANCHES_NAMESPACE}/")


def branch_name(ref: str) -> str:
    if not is_branch_ref(ref):
        raise ValueError(f"invalid branch reference: {ref} (expected '{BRANCHES_NAMESPACE}/...')")
    return ref[len(BRANCHES_NAMESPACE) + 1 :]


def tag_ref(version: SemanticVersion) -> str:
    return f"{TAGS_NAMESPACE}/{tag_name(version)}"


def tag_ref_short(name: str) -> str:
    """``tags/<name>``, the form used in git refs API paths."""
    return f"{TAGS_CATEGORY}/{name}"


def is_tag_ref(ref: str) -> bool:
    return ref.lower().startswith(f"{TAGS_NAMESPACE}/")


def tag_name_from_ref(ref: str) -> str:
    if not is_tag_ref(ref):
        raise ValueError(f"invalid tag reference: {ref} (expected '{TAGS_NAMESPACE}/...')")
    return ref[len(TAGS_NAMESPACE) + 1 :]


def releases_url(repository_address: str) -> str:
    return f"{repository_address}/{RELEASES_PATH}"
