from __future__ import annotations

# GitHub API calls through gh
GH_TIMEOUT_SECONDS = 60.0

# Tree creation uploads every staged file in one request
GH_TREE_TIMEOUT_SECONDS = 5 * 60.0

# Packaging executable
NUGET_PACK_TIMEOUT_SECONDS = 5 * 60.0
NUGET_PUSH_TIMEOUT_SECONDS = 10 * 60.0
NUGET_DELETE_TIMEOUT_SECONDS = 2 * 60.0

# Upstream read caches (releases, tags)
UPSTREAM_CACHE_TTL_SECONDS = 60 * 60.0
