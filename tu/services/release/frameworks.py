"""Target framework monikers declared by the upstream package.

Dependency groups in a .nuspec carry a ``targetFramework`` attribute in either
the long form (``.NETCoreApp8.0``, ``.NETStandard2.1``) or the short folder
form (``net8.0``, ``netstandard2.1``, ``net48``). We need both spellings back:
the short one names ``lib/<tfm>`` folders, the long one is what the packaging
tool expects in dependency groups for .NET Framework and .NET Standard.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

NET_CORE_APP = ".NETCoreApp"
NET_STANDARD = ".NETStandard"
NET_FRAMEWORK = ".NETFramework"

_IDENTIFIERS = {i.lower(): i for i in (NET_CORE_APP, NET_STANDARD, NET_FRAMEWORK)}

_LONG_RE = re.compile(
    r"^(\.NETCoreApp|\.NETStandard|\.NETFramework),?(?:Version=v)?(\d+(?:\.\d+)*)$", re.I
)
_NETSTANDARD_RE = re.compile(r"^netstandard(\d+(?:\.\d+)*)$", re.I)
_NETCOREAPP_RE = re.compile(r"^netcoreapp(\d+(?:\.\d+)*)$", re.I)
_NET_DOTTED_RE = re.compile(r"^net(\d+\.\d+)(-[a-z0-9.]+)?$", re.I)
_NET_COMPACT_RE = re.compile(r"^net(\d{2,3})$", re.I)


def _dotted(text: str) -> tuple[int, ...]:
    parts = tuple(int(p) for p in text.split("."))
    return parts if len(parts) >= 2 else (*parts, 0)


@dataclass(frozen=True, slots=True)
class TargetFramework:
    """A parsed framework moniker.

    ``identifier`` is one of the long identifiers above, or the raw moniker
    when it is not recognized (``version`` is then empty).
    """

    identifier: str
    version: tuple[int, ...] = ()
    platform: str | None = None

    @classmethod
    def parse(cls, moniker: str) -> TargetFramework:
        text = moniker.strip()

        m = _LONG_RE.match(text)
        if m is not None:
            return cls(_IDENTIFIERS[m.group(1).lower()], _dotted(m.group(2)))

        m = _NETSTANDARD_RE.match(text)
        if m is not None:
            return cls(NET_STANDARD, _dotted(m.group(1)))

        m = _NETCOREAPP_RE.match(text)
        if m is not None:
            return cls(NET_CORE_APP, _dotted(m.group(1)))

        m = _NET_DOTTED_RE.match(text)
        if m is not None:
            platform = m.group(2)[1:].lower() if m.group(2) else None
            return cls(NET_CORE_APP, _dotted(m.group(1)), platform)

        m = _NET_COMPACT_RE.match(text)
        if m is not None:
            return cls(NET_FRAMEWORK, tuple(int(d) for d in m.group(1)))

        return cls(text)

    @property
    def is_known(self) -> bool:
        return bool(self.version)

    @property
    def short_folder_name(self) -> str:
        if not self.version:
            return self.identifier
        major, minor = self.version[0], self.version[1]
        match self.identifier:
            case ".NETStandard":
                return f"netstandard{major}.{minor}"
            case ".NETFramework":
                digits = list(self.version)
                while len(digits) > 2 and digits[-1] == 0:
                    digits.pop()
                return "net" + "".join(str(d) for d in digits)
            case _:
                if major >= 5:
                    suffix = f"-{self.platform}" if self.platform else ""
                    return f"net{major}.{minor}{suffix}"
                return f"netcoreapp{major}.{minor}"

    @property
    def dependency_name(self) -> str:
        """Name used in ``<group targetFramework=...>`` of the generated spec."""
        if self.version and self.identifier in (NET_FRAMEWORK, NET_STANDARD):
            digits = list(self.version)
            while len(digits) > 2 and digits[-1] == 0:
                digits.pop()
            return self.identifier + ".".join(str(d) for d in digits)
        return self.short_folder_name

    def __str__(self) -> str:
        return self.short_folder_name
