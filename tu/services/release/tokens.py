from __future__ import annotations

import re
from collections.abc import Mapping


def replace_tokens(text: str, tokens: Mapping[str, str]) -> str:
    """Replace every token in one pass.

    Replacement values are never re-scanned, so a commit message containing
    ``{packageId}`` survives verbatim inside release notes.
    """
    if not tokens:
        return text
    # Longest first so "{package}" never shadows "{packageId}".
    keys = sorted(tokens, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(k) for k in keys))
    return pattern.sub(lambda m: tokens[m.group(0)], text)
