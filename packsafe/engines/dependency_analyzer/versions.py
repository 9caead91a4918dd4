"""Version cleaning, ordering and range membership for npm versions.

Versions are parsed with :meth:`semantic_version.Version.coerce`, so ``"2"``
reads as ``2.0.0``, ``"1.x"`` as ``1.0.0`` and ``"v"``-less junk such as
``"latest"``, ``"*"`` or ``"git+https://..."`` is unparseable.

Outdated checks and update severity look only at ``(major, minor, patch)``:
``"1.2.3-beta.1"`` is not behind ``"1.2.3"``. Advisory ranges use full
semver precedence instead, where a pre-release sorts below its release, so
``4.17.21-beta.1`` is inside ``< 4.17.21``.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable
from dataclasses import dataclass

from semantic_version import Version

from packsafe.engines.dependency_analyzer.models import UpdateSeverity

_OPERATOR_RE = re.compile(r"[\^~><=]")
_CLAUSE_RE = re.compile(r"^(>=|<=|>|<|=)?v?(.+)$")

_COMPARATORS: dict[str, Callable[[Version, Version], bool]] = {
    ">=": operator.ge,
    ">": operator.gt,
    "<=": operator.le,
    "<": operator.lt,
    "=": operator.eq,
}


def clean_version(declared: str | None) -> str:
    """Strip range operators from a declared version range.

    ``"^1.2.3"`` → ``"1.2.3"``, ``">=1.2.0 <2.0.0"`` → ``"1.2.0"``,
    ``"1.x || 2.x"`` → ``"1.x"``. Returns ``""`` for an empty range.
    """
    if not declared:
        return ""
    first_alternative = declared.split("||", 1)[0]
    cleaned = _OPERATOR_RE.sub("", first_alternative).strip()
    if not cleaned:
        return ""
    token = cleaned.split()[0]
    if token[:1] in ("v", "V") and token[1:2].isdigit():
        token = token[1:]
    return token


def parse_version(version: str | None) -> Version | None:
    """Coerce *version* into a :class:`Version`, or None if it has no numeric major.

    Build metadata is dropped; a pre-release tag is kept.
    """
    if not version:
        return None
    try:
        return Version.coerce(version.strip()).truncate("prerelease")
    except ValueError:
        return None


def _require(version: str) -> Version:
    parsed = parse_version(version)
    if parsed is None:
        raise ValueError(f"unparseable version: {version!r}")
    return parsed


def _release(version: str) -> tuple[int, int, int]:
    parsed = _require(version)
    return (parsed.major, parsed.minor, parsed.patch)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as *a*'s release triple is below, equal to or above *b*'s.

    Raises ``ValueError`` if either version is unparseable.
    """
    ta, tb = _release(a), _release(b)
    return (ta > tb) - (ta < tb)


def is_outdated(current: str, latest: str | None) -> bool:
    """True if *latest* is strictly greater than *current*.

    Unknown or unparseable versions are never outdated.
    """
    if not latest:
        return False
    try:
        return compare_versions(latest, current) > 0
    except ValueError:
        return False


def update_severity(current: str, latest: str) -> UpdateSeverity:
    """``high`` if the major differs, ``medium`` if only the minor differs, else ``low``."""
    cur, lat = _release(current), _release(latest)
    if cur[0] != lat[0]:
        return "high"
    if cur[1] != lat[1]:
        return "medium"
    return "low"


@dataclass(frozen=True)
class VersionRange:
    """All ``(operator, bound)`` clauses must hold; no clauses matches every version."""

    clauses: tuple[tuple[str, Version], ...] = ()

    def contains(self, version: str) -> bool:
        target = parse_version(version)
        if target is None:
            return False
        return all(_COMPARATORS[op](target, bound) for op, bound in self.clauses)

    @classmethod
    def below(cls, fixed: str | None) -> VersionRange:
        """Every version before *fixed*, or every version when no fix is published."""
        if not fixed:
            return cls()
        return cls((("<", _require(fixed)),))

    @classmethod
    def parse(cls, text: str) -> VersionRange:
        """Parse an advisory range such as ``">= 4.0.0, < 4.17.21"`` or ``"<= 1.2.3"``.

        Raises ``ValueError`` on a clause it does not understand.
        """
        clauses: list[tuple[str, Version]] = []
        for raw in text.split(","):
            clause = "".join(raw.split())
            if not clause:
                continue
            match = _CLAUSE_RE.match(clause)
            bound = parse_version(match.group(2)) if match else None
            if match is None or bound is None:
                raise ValueError(f"unsupported range clause: {raw.strip()!r}")
            clauses.append((match.group(1) or "=", bound))
        return cls(tuple(clauses))
