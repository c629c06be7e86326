"""Maven version range parsing and selection."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from packaging.version import InvalidVersion, Version

from .models import GoOfflineError


class InvalidVersionRange(GoOfflineError, ValueError):
    """A version range specification could not be parsed."""


_MAVEN_VERSION = re.compile(r"^v?(\d+(?:\.\d+)*)(?:[.-]?(.+))?$", re.IGNORECASE)
_QUALIFIER = re.compile(r"^([a-z]+)[.-]?(\d*)$")

# Maven qualifiers that mean "this release".
_RELEASE_QUALIFIERS = {"ga", "final", "release"}

# Maven qualifier -> pre/post-release segment, in Maven's ordering:
# alpha < beta < milestone < rc < release < sp. Snapshots map to dev releases.
_QUALIFIER_SEGMENTS = {
    "alpha": "a{}",
    "a": "a{}",
    "beta": "b{}",
    "b": "b{}",
    "milestone": "b{}",
    "m": "b{}",
    "rc": "rc{}",
    "cr": "rc{}",
    "sp": ".post{}",
}
_MILESTONE_OFFSET = 1000


def _normalize_maven_version(version_str: str) -> str | None:
    """Map a Maven version string onto an equivalent PEP 440 one.

    ``1.0-SNAPSHOT`` sorts below ``1.0``. An unknown qualifier such as ``31.1-jre``
    sorts just above ``31.1``.
    """
    match = _MAVEN_VERSION.match(version_str.strip())
    if not match:
        return None
    release, qualifier = match.group(1), (match.group(2) or "").lower()
    if not qualifier or qualifier in _RELEASE_QUALIFIERS:
        return release
    if qualifier == "snapshot":
        return f"{release}.dev0"

    known = _QUALIFIER.match(qualifier)
    if known and known.group(1) in _QUALIFIER_SEGMENTS:
        label, number = known.group(1), int(known.group(2) or 0)
        if label in ("milestone", "m"):
            number += _MILESTONE_OFFSET
        return release + _QUALIFIER_SEGMENTS[label].format(number)

    local = ".".join(part for part in re.split(r"[^a-z0-9]+", qualifier) if part)
    return f"{release}+{local}" if local else release


def parse_version(version_str: str) -> Version | None:
    """Parse a version string, or return None when it is not comparable.

    PEP 440 strings parse as-is; Maven qualifiers (``-SNAPSHOT``, ``.RELEASE``,
    ``-jre`` and the like) are normalized first.
    """
    try:
        return Version(version_str)
    except InvalidVersion:
        pass
    normalized = _normalize_maven_version(version_str)
    if normalized is None:
        return None
    try:
        return Version(normalized)
    except InvalidVersion:
        return None


@dataclass(frozen=True)
class Restriction:
    """One bracketed interval of a version range."""

    lower: Version | None
    lower_inclusive: bool
    upper: Version | None
    upper_inclusive: bool

    def contains(self, version: Version) -> bool:
        if self.lower is not None:
            if version < self.lower or (version == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if version > self.upper or (version == self.upper and not self.upper_inclusive):
                return False
        return True


class VersionRange:
    """A union of restrictions such as ``(,1.0],[1.2,)``."""

    def __init__(self, spec: str, restrictions: list[Restriction]):
        self.spec = spec
        self.restrictions = restrictions

    @classmethod
    def parse(cls, spec: str) -> VersionRange:
        """Parse a Maven version range specification.

        Args:
            spec: Range such as "[1.0,2.0)", "[1.2]" or "(,1.0],[1.2,)"

        Returns:
            Parsed range
        """
        restrictions = []
        remaining = spec.strip()
        if not remaining:
            raise InvalidVersionRange("Empty version range")

        while remaining:
            if remaining[0] not in "[(":
                raise InvalidVersionRange(f"Expected '[' or '(' in range {spec!r}")
            end = min(
                (i for i in (remaining.find("]"), remaining.find(")")) if i >= 0),
                default=-1,
            )
            if end < 0:
                raise InvalidVersionRange(f"Unbounded range {spec!r}")
            restrictions.append(cls._parse_restriction(spec, remaining[: end + 1]))
            remaining = remaining[end + 1 :].strip()
            if remaining.startswith(","):
                remaining = remaining[1:].strip()
                if not remaining:
                    raise InvalidVersionRange(f"Trailing ',' in range {spec!r}")

        return cls(spec, restrictions)

    @staticmethod
    def _parse_restriction(spec: str, text: str) -> Restriction:
        lower_inclusive = text[0] == "["
        upper_inclusive = text[-1] == "]"
        body = text[1:-1].strip()

        if "," not in body:
            # [1.0] pins a single version
            if not (lower_inclusive and upper_inclusive) or not body:
                raise InvalidVersionRange(f"Single version must be enclosed in [] in {spec!r}")
            version = _bound(spec, body)
            return Restriction(version, True, version, True)

        low, high = (part.strip() for part in body.split(",", 1))
        if "," in high:
            raise InvalidVersionRange(f"Too many bounds in {text!r} of {spec!r}")
        lower = _bound(spec, low) if low else None
        upper = _bound(spec, high) if high else None
        if lower is not None and upper is not None and upper < lower:
            raise InvalidVersionRange(f"Lower bound above upper bound in {spec!r}")
        return Restriction(lower, lower_inclusive, upper, upper_inclusive)

    def contains(self, version_str: str) -> bool:
        version = parse_version(version_str)
        if version is None:
            return False
        return any(r.contains(version) for r in self.restrictions)

    def select(self, candidates: Iterable[str]) -> str | None:
        """Pick the highest candidate inside the range.

        Candidates that cannot be parsed as versions are skipped.
        """
        best: tuple[Version, str] | None = None
        for candidate in candidates:
            version = parse_version(candidate)
            if version is None:
                continue
            if any(r.contains(version) for r in self.restrictions):
                if best is None or version > best[0]:
                    best = (version, candidate)
        return best[1] if best else None

    def __repr__(self) -> str:
        return f"VersionRange({self.spec!r})"


def _bound(spec: str, text: str) -> Version:
    version = parse_version(text)
    if version is None:
        raise InvalidVersionRange(f"Invalid version {text!r} in range {spec!r}")
    return version


def is_range(version: str) -> bool:
    return version.strip()[:1] in ("[", "(")
