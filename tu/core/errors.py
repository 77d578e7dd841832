"""Exit codes for the CLI.

One enum maps every way a run can end to a shell exit status. The values are
part of the CLI contract (CI jobs branch on them) and must stay stable.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success, including "nothing to release" and the duplicate-tag stop
    - 1: User error (invalid flag combination)
    - 2: Config error (missing or malformed configuration)
    - 3: Cleanup refused or failed before any release work
    - 4: External failure (GitHub, package feed, packaging tool)
    - 130: Cancelled (SIGINT)
    """

    OK = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    CLEANUP_ERROR = 3
    EXTERNAL_ERROR = 4
    CANCELLED = 130

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
