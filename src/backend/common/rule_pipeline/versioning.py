"""Semantic version parsing and constraint matching.

Constraints follow the usual range syntax:

- ``1.2.3`` / ``=1.2.3`` exact match
- ``>``, ``>=``, ``<``, ``<=`` comparisons
- ``^1.2.3`` compatible with the left-most non-zero component
- ``~1.2.3`` patch level changes only
- ``*``, ``x``, ``1.x``, ``1.2.x``, ``1``, ``1.2`` wildcard ranges
- whitespace separated comparators must all match, ``||`` separates alternatives
- ``@pre`` (or ``@prerelease``) lets pre-release versions satisfy ranges

Parsing never raises; callers get ``None`` and the guard fails closed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import List, Optional, Tuple, Union

_VERSION_RE = re.compile(
    r"^[vV]?(?P<major>0|[1-9]\d*)"
    r"(?:\.(?P<minor>0|[1-9]\d*))?"
    r"(?:\.(?P<patch>0|[1-9]\d*))?"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_PARTIAL_RE = re.compile(
    r"^[vV]?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)

_OPERATORS = (">=", "<=", ">", "<", "=", "^", "~")
_WILDCARDS = ("x", "X", "*")
_PRERELEASE_FLAGS = ("@pre", "@prerelease")


def _compare_identifiers(left: Tuple[str, ...], right: Tuple[str, ...]) -> int:
    # A version without pre-release identifiers has higher precedence.
    if not left and not right:
        return 0
    if not left:
        return 1
    if not right:
        return -1
    for a, b in zip(left, right):
        if a == b:
            continue
        a_num, b_num = a.isdigit(), b.isdigit()
        if a_num and b_num:
            return -1 if int(a) < int(b) else 1
        if a_num:
            return -1
        if b_num:
            return 1
        return -1 if a < b else 1
    if len(left) == len(right):
        return 0
    return -1 if len(left) < len(right) else 1


@total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    major: int
    minor: int = 0
    patch: int = 0
    prerelease: Tuple[str, ...] = ()
    build: str = ""

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def core(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def compare(self, other: "SemanticVersion") -> int:
        if self.core != other.core:
            return -1 if self.core < other.core else 1
        return _compare_identifiers(self.prerelease, other.prerelease)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        # Build metadata does not take part in precedence.
        return self.compare(other) == 0

    def __lt__(self, other: "SemanticVersion") -> bool:
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self.core, self.prerelease))

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text = f"{text}-{'.'.join(self.prerelease)}"
        if self.build:
            text = f"{text}+{self.build}"
        return text


def try_parse_version(text: Optional[str]) -> Optional[SemanticVersion]:
    if not isinstance(text, str):
        return None
    match = _VERSION_RE.match(text.strip())
    if match is None:
        return None
    pre = match.group("pre")
    return SemanticVersion(
        major=int(match.group("major")),
        minor=int(match.group("minor") or 0),
        patch=int(match.group("patch") or 0),
        prerelease=tuple(pre.split(".")) if pre else (),
        build=match.group("build") or "",
    )


@dataclass(frozen=True)
class Comparator:
    operator: str
    version: SemanticVersion

    def test(self, version: SemanticVersion) -> bool:
        result = version.compare(self.version)
        if self.operator == "=":
            return result == 0
        if self.operator == ">":
            return result > 0
        if self.operator == ">=":
            return result >= 0
        if self.operator == "<":
            return result < 0
        if self.operator == "<=":
            return result <= 0
        return False


@dataclass(frozen=True)
class ComparatorSet:
    comparators: Tuple[Comparator, ...]

    def test(self, version: SemanticVersion, include_prerelease: bool) -> bool:
        if not all(c.test(version) for c in self.comparators):
            return False
        if not version.is_prerelease or include_prerelease:
            return True
        # A pre-release only matches when a comparator opts in on the same core version.
        return any(c.version.is_prerelease and c.version.core == version.core for c in self.comparators)


@dataclass(frozen=True)
class VersionConstraint:
    sets: Tuple[ComparatorSet, ...]
    include_prerelease: bool = False

    def accepts(self, version: SemanticVersion) -> bool:
        return any(s.test(version, self.include_prerelease) for s in self.sets)


def _part(value: Optional[str]) -> Optional[int]:
    if value is None or value in _WILDCARDS:
        return None
    return int(value)


def _expand(operator: str, text: str) -> Optional[List[Comparator]]:
    match = _PARTIAL_RE.match(text)
    if match is None:
        return None
    major, minor, patch = (_part(match.group(k)) for k in ("major", "minor", "patch"))
    if major is None and (minor is not None or patch is not None):
        return None
    if minor is None and patch is not None:
        return None
    pre = match.group("pre")
    prerelease = tuple(pre.split(".")) if pre else ()

    if major is None:
        # '*' style wildcard matches anything except for strict comparisons.
        if operator in (">", "<"):
            return [Comparator("<", SemanticVersion(0, 0, 0, ("0",)))]
        return [Comparator(">=", SemanticVersion(0, 0, 0))]

    partial = minor is None or patch is None
    low = SemanticVersion(major, minor or 0, patch or 0, () if partial else prerelease)
    if minor is None:
        next_up = SemanticVersion(major + 1, 0, 0, ("0",))
    elif patch is None:
        next_up = SemanticVersion(major, minor + 1, 0, ("0",))
    else:
        next_up = None

    if operator == "^":
        if major > 0 or minor is None:
            upper = SemanticVersion(major + 1, 0, 0, ("0",))
        elif minor > 0 or patch is None:
            upper = SemanticVersion(0, minor + 1, 0, ("0",))
        else:
            upper = SemanticVersion(0, 0, patch + 1, ("0",))
        return [Comparator(">=", low), Comparator("<", upper)]
    if operator == "~":
        if minor is None:
            upper = SemanticVersion(major + 1, 0, 0, ("0",))
        else:
            upper = SemanticVersion(major, minor + 1, 0, ("0",))
        return [Comparator(">=", low), Comparator("<", upper)]
    if operator == "=":
        if next_up is None:
            return [Comparator("=", low)]
        return [Comparator(">=", low), Comparator("<", next_up)]
    if operator == ">":
        if next_up is None:
            return [Comparator(">", low)]
        return [Comparator(">=", SemanticVersion(*next_up.core))]
    if operator == ">=":
        return [Comparator(">=", low)]
    if operator == "<":
        return [Comparator("<", low)]
    if operator == "<=":
        return [Comparator("<", next_up) if next_up else Comparator("<=", low)]
    return None


def _split_operator(token: str) -> Tuple[str, str]:
    for op in _OPERATORS:
        if token.startswith(op):
            return op, token[len(op):].strip()
    return "=", token


def try_parse_constraint(text: Optional[str]) -> Optional[VersionConstraint]:
    if not isinstance(text, str) or not text.strip():
        return None
    body = text.strip()
    include_prerelease = False
    for flag in _PRERELEASE_FLAGS:
        if body.lower().endswith(flag):
            include_prerelease = True
            body = body[: -len(flag)].strip()
            break
    if not body:
        return None

    sets: List[ComparatorSet] = []
    for alternative in body.split("||"):
        # Join operators separated from their version by a space, e.g. '>= 1.0.0'.
        tokens = re.sub(r"(>=|<=|>|<|=|\^|~)\s+", r"\1", alternative.strip()).split()
        if not tokens:
            return None
        comparators: List[Comparator] = []
        for token in tokens:
            operator, rest = _split_operator(token)
            expanded = _expand(operator, rest)
            if expanded is None:
                return None
            comparators.extend(expanded)
        sets.append(ComparatorSet(tuple(comparators)))
    return VersionConstraint(tuple(sets), include_prerelease=include_prerelease)


def satisfies(
    version: Union[str, SemanticVersion, None],
    constraint: Union[str, VersionConstraint, None],
) -> bool:
    """Return True when ``version`` meets ``constraint``; anything unparseable fails closed."""
    parsed_version = version if isinstance(version, SemanticVersion) else try_parse_version(version)
    parsed_constraint = (
        constraint if isinstance(constraint, VersionConstraint) else try_parse_constraint(constraint)
    )
    if parsed_version is None or parsed_constraint is None:
        return False
    return parsed_constraint.accepts(parsed_version)
