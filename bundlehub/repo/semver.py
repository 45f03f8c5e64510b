"""Semantic versions and version-range constraints.

Versions follow Semantic Versioning 2.0.0 (``semver.Version``) with a little
leniency: a leading ``v`` is allowed, partial versions are padded
(``1.2`` == ``1.2.0``) and build metadata is ignored. Pre-release precedence
is the semver one: ``1.0.0-1 < 1.0.0-alpha < 1.0.0-alpha.1 < 1.0.0-beta``.

Constraints use the range syntax familiar from package managers::

    1.2.3            exactly 1.2.3
    >= 1.2, < 2      comma (or space) separated terms must all match
    ^1.2.3           same major version, at least 1.2.3
    ~1.2.3  ~>1.2.3  same minor version, at least 1.2.3
    1.2.x  1.*       wildcards
    1.2 - 1.4.5      inclusive hyphen range
    ^1.0 || ^2.0     either group may match

Pre-release versions only satisfy a term that itself names a pre-release.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from semver import Version

from bundlehub.errors import ConstraintParseError

_WILDCARDS = ("x", "X", "*")

_VERSION_TOKEN = r"v?(?:[0-9]+|[xX*])(?:\.(?:[0-9]+|[xX*])){0,2}(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?"
_TERM_RE = re.compile(
    r"\s*(?P<op>!=|>=|<=|=>|=<|~>|>|<|=|~|\^)?\s*(?P<ver>" + _VERSION_TOKEN + r")\s*"
)
_HYPHEN_RE = re.compile(r"(?P<lo>" + _VERSION_TOKEN + r")\s+-\s+(?P<hi>" + _VERSION_TOKEN + r")")


def parse_version(text: str) -> Version:
    """Parse *text* as a semantic version, raising ``ValueError`` on failure."""
    raw = text.strip()
    if raw[:1] in ("v", "V"):
        raw = raw[1:]
    version = Version.parse(raw, optional_minor_and_patch=True)
    return version.replace(build=None) if version.build else version


def try_parse_version(text: str) -> Version | None:
    try:
        return parse_version(text)
    except (ValueError, TypeError):
        return None


def is_prerelease(v: Version) -> bool:
    return v.prerelease is not None


def sort_descending(items: list, version_of: Callable = lambda item: item) -> list:
    """Stable descending sort by semantic version; unparsable versions trail."""
    parsed = [(try_parse_version(version_of(item)), item) for item in items]
    good = [p for p in parsed if p[0] is not None]
    bad = [item for v, item in parsed if v is None]
    good.sort(key=lambda p: p[0], reverse=True)
    # reverse=True keeps equal keys in their original order
    return [item for _, item in good] + bad


# ── Constraints ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class _Bound:
    """The version named in a constraint term, with wildcard information."""

    version: Version
    # leading components before a wildcard (3 when there is none)
    fixed: int
    # numeric components written out, e.g. 1 for "~1"
    given: int
    prerelease: bool

    @classmethod
    def parse(cls, text: str) -> _Bound:
        raw = text.strip()
        if raw[:1] in ("v", "V"):
            raw = raw[1:]
        core, sep, _ = raw.partition("-")
        components = core.split("+", 1)[0].split(".")
        fixed = len(components)
        for i, part in enumerate(components):
            if part in _WILDCARDS:
                fixed = i
                break
        if fixed < len(components):
            if sep:
                raise ConstraintParseError(f"wildcard version cannot carry a pre-release: {text!r}")
            numbers = components[:fixed] + ["0"] * (3 - fixed)
            if not all(n.isdigit() for n in numbers):
                raise ConstraintParseError(f"invalid wildcard version: {text!r}")
            return cls(Version(*(int(n) for n in numbers)), fixed, fixed, False)
        try:
            version = parse_version(raw)
        except ValueError as e:
            raise ConstraintParseError(f"invalid version {text!r}: {e}") from e
        return cls(version, 3, len(components), is_prerelease(version))

    def upper(self, level: int) -> Version:
        """Smallest version above this bound at *level* (0=major, 1=minor)."""
        if level <= 0:
            return Version(self.version.major + 1, 0, 0)
        return Version(self.version.major, self.version.minor + 1, 0)


def _wildcard_upper(bound: _Bound) -> Version | None:
    if bound.fixed >= 3:
        return None
    if bound.fixed == 0:
        return None
    return bound.upper(bound.fixed - 1)


def _term_predicate(op: str, bound: _Bound) -> Callable[[Version], bool]:
    low = bound.version
    wild_hi = _wildcard_upper(bound)
    any_version = bound.fixed == 0

    if op in ("", "="):
        if any_version:
            return lambda v: True
        if wild_hi is not None:
            return lambda v: low <= v < wild_hi
        return lambda v: v == low
    if op == "!=":
        if any_version:
            return lambda v: False
        if wild_hi is not None:
            return lambda v: not (low <= v < wild_hi)
        return lambda v: v != low
    if op == ">":
        if any_version:
            return lambda v: False
        if wild_hi is not None:
            return lambda v: v >= wild_hi
        return lambda v: v > low
    if op in (">=", "=>"):
        return lambda v: v >= low
    if op == "<":
        if any_version:
            return lambda v: False
        return lambda v: v < low
    if op in ("<=", "=<"):
        if any_version:
            return lambda v: True
        if wild_hi is not None:
            return lambda v: v < wild_hi
        return lambda v: v <= low
    if op in ("~", "~>"):
        if any_version:
            return lambda v: True
        hi = bound.upper(0 if bound.given == 1 else 1)
        return lambda v: low <= v < hi
    if op == "^":
        if any_version:
            return lambda v: True
        hi = bound.upper(0)
        return lambda v: low <= v < hi
    raise ConstraintParseError(f"unknown operator {op!r}")


@dataclass(frozen=True)
class _Term:
    op: str
    bound: _Bound
    predicate: Callable[[Version], bool]

    def check(self, v: Version) -> bool:
        if is_prerelease(v) and not self.bound.prerelease:
            return False
        return self.predicate(v)


def _parse_group(text: str) -> list[_Term]:
    text = _HYPHEN_RE.sub(lambda m: f">={m.group('lo')}, <={m.group('hi')}", text)
    terms: list[_Term] = []
    for piece in text.split(","):
        if not piece.strip():
            raise ConstraintParseError(f"empty term in constraint {text!r}")
        pos = 0
        while pos < len(piece):
            if not piece[pos:].strip():
                break
            m = _TERM_RE.match(piece, pos)
            if m is None or m.end() == pos:
                raise ConstraintParseError(f"improper constraint: {piece.strip()!r}")
            op = m.group("op") or ""
            bound = _Bound.parse(m.group("ver"))
            terms.append(_Term(op, bound, _term_predicate(op, bound)))
            pos = m.end()
    return terms


class Constraint:
    """A parsed version range: OR of AND-groups of terms."""

    def __init__(self, text: str, groups: list[list[_Term]]):
        self.text = text
        self._groups = groups

    @classmethod
    def parse(cls, text: str) -> Constraint:
        if not text or not text.strip():
            raise ConstraintParseError("empty version constraint")
        groups = []
        for group in text.split("||"):
            if not group.strip():
                raise ConstraintParseError(f"empty alternative in constraint {text!r}")
            groups.append(_parse_group(group))
        return cls(text, groups)

    def check(self, version: Version | str) -> bool:
        if isinstance(version, str):
            parsed = try_parse_version(version)
            if parsed is None:
                return False
            version = parsed
        return any(all(t.check(version) for t in group) for group in self._groups)

    def __repr__(self) -> str:
        return f"Constraint({self.text!r})"
