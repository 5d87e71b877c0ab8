"""Semver range constraints as used by kapp-controller version selection.

Grammar:
    constraint  := group ("||" group)*
    group       := comparator ((" " | ",") comparator)* | hyphen
    hyphen      := partial " - " partial
    comparator  := [op] partial
    op          := "=" | "==" | "!=" | ">" | ">=" | "<" | "<=" | "~" | "~>" | "^"
    partial     := ["v"] part ["." part ["." part]] ["-" prerelease] ["+" build]
    part        := digits | "x" | "X" | "*"

A pre-release version only satisfies a group in which at least one
comparator names a pre-release itself.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import semver

from kapp_packages.exception import InvalidConstraintError

_WILDCARDS = {"x", "X", "*"}
_OPERATORS = ("==", "!=", ">=", "<=", "~>", "=", ">", "<", "~", "^")
_HYPHEN_RE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")
_OPERATOR_SPACING_RE = re.compile(r"(==|!=|>=|<=|~>|=|>|<|~|\^)\s+")
_PARTIAL_RE = re.compile(
    r"^v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)

Predicate = Callable[[semver.Version], bool]


@dataclass(frozen=True)
class _Partial:
    """A possibly incomplete version; None marks a missing or wildcard part."""

    major: Optional[int]
    minor: Optional[int]
    patch: Optional[int]
    prerelease: Optional[str] = None
    build: Optional[str] = None

    @property
    def is_any(self) -> bool:
        return self.major is None

    @property
    def is_complete(self) -> bool:
        return self.patch is not None

    def floor(self) -> semver.Version:
        return semver.Version(
            self.major or 0,
            self.minor or 0,
            self.patch or 0,
            prerelease=self.prerelease,
            build=self.build,
        )

    def ceiling(self) -> semver.Version:
        """First version above every version this partial stands for."""
        if self.minor is None:
            return semver.Version(self.major + 1, 0, 0)
        return semver.Version(self.major, self.minor + 1, 0)


@dataclass
class _Comparator:
    text: str
    predicate: Predicate
    allows_prerelease: bool = False


@dataclass
class _Group:
    comparators: List[_Comparator] = field(default_factory=list)

    def check(self, version: semver.Version) -> bool:
        if version.prerelease and not any(c.allows_prerelease for c in self.comparators):
            return False
        return all(c.predicate(version) for c in self.comparators)


def _parse_partial(constraint: str, text: str) -> _Partial:
    match = _PARTIAL_RE.match(text)
    if match is None:
        raise InvalidConstraintError(constraint, f"{text!r} is not a valid version")

    parts: List[Optional[int]] = []
    wildcard_seen = False
    for name in ("major", "minor", "patch"):
        value = match.group(name)
        if value is None or value in _WILDCARDS:
            wildcard_seen = True
            parts.append(None)
        elif wildcard_seen:
            raise InvalidConstraintError(
                constraint, f"{text!r} has a number after a wildcard"
            )
        else:
            parts.append(int(value))

    prerelease = match.group("prerelease")
    if prerelease and parts[2] is None:
        raise InvalidConstraintError(
            constraint, f"{text!r} has a pre-release on an incomplete version"
        )
    return _Partial(parts[0], parts[1], parts[2], prerelease, match.group("build"))


def _at_least(bound: semver.Version) -> Predicate:
    return lambda v: v.compare(bound) >= 0


def _above(bound: semver.Version) -> Predicate:
    return lambda v: v.compare(bound) > 0


def _below(bound: semver.Version) -> Predicate:
    return lambda v: v.compare(bound) < 0


def _at_most(bound: semver.Version) -> Predicate:
    return lambda v: v.compare(bound) <= 0


def _between(low: semver.Version, high: semver.Version) -> Predicate:
    return lambda v: v.compare(low) >= 0 and v.compare(high) < 0


def _any(_: semver.Version) -> bool:
    return True


def _comparator_predicate(op: str, partial: _Partial) -> Predicate:
    if partial.is_any:
        if op in ("<", ">", "!="):
            return lambda _: False
        return _any

    low = partial.floor()
    if op in ("", "=", "=="):
        if partial.is_complete:
            return lambda v: v.compare(low) == 0
        return _between(low, partial.ceiling())
    if op == "!=":
        if partial.is_complete:
            return lambda v: v.compare(low) != 0
        high = partial.ceiling()
        return lambda v: not (v.compare(low) >= 0 and v.compare(high) < 0)
    if op == ">":
        if partial.is_complete:
            return _above(low)
        return _at_least(partial.ceiling())
    if op == ">=":
        return _at_least(low)
    if op == "<":
        return _below(low)
    if op == "<=":
        if partial.is_complete:
            return _at_most(low)
        return _below(partial.ceiling())
    if op in ("~", "~>"):
        if partial.minor is None:
            return _between(low, semver.Version(partial.major + 1, 0, 0))
        return _between(low, semver.Version(partial.major, partial.minor + 1, 0))
    if op == "^":
        if partial.major > 0 or partial.minor is None:
            return _between(low, semver.Version(partial.major + 1, 0, 0))
        if partial.minor > 0 or partial.patch is None:
            return _between(low, semver.Version(0, partial.minor + 1, 0))
        return _between(low, semver.Version(0, 0, partial.patch + 1))
    raise AssertionError(f"unhandled operator {op!r}")


def _split_operator(token: str) -> Tuple[str, str]:
    for op in _OPERATORS:
        if token.startswith(op):
            return op, token[len(op):]
    return "", token


def _parse_group(constraint: str, text: str) -> _Group:
    group = _Group()
    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        low = _parse_partial(constraint, hyphen.group(1))
        high = _parse_partial(constraint, hyphen.group(2))
        group.comparators.append(
            _Comparator(hyphen.group(1), _comparator_predicate(">=", low), bool(low.prerelease))
        )
        group.comparators.append(
            _Comparator(hyphen.group(2), _comparator_predicate("<=", high), bool(high.prerelease))
        )
        return group

    normalized = _OPERATOR_SPACING_RE.sub(r"\1", text.replace(",", " "))
    tokens = normalized.split()
    if not tokens:
        raise InvalidConstraintError(constraint, "empty comparator group")
    for token in tokens:
        op, version_text = _split_operator(token)
        if not version_text:
            raise InvalidConstraintError(constraint, f"{token!r} has no version")
        partial = _parse_partial(constraint, version_text)
        group.comparators.append(
            _Comparator(token, _comparator_predicate(op, partial), bool(partial.prerelease))
        )
    return group


class SemverConstraint:
    """A parsed constraint expression.

    Attributes:
        expression: The original constraint text
    """

    def __init__(self, expression: str, groups: List[_Group]):
        self.expression = expression
        self._groups = groups

    def check(self, version: semver.Version) -> bool:
        """Return whether version satisfies any OR group of the constraint."""
        return any(group.check(version) for group in self._groups)

    def __repr__(self) -> str:
        return f"SemverConstraint({self.expression!r})"


def parse_constraint(expression: str) -> SemverConstraint:
    """Parse a constraint expression such as ">1.0.0 <2.0.0 || 3.0.0".

    Args:
        expression: Constraint text

    Returns:
        Parsed SemverConstraint

    Raises:
        InvalidConstraintError: If the expression does not follow the grammar
    """
    if expression is None or not expression.strip():
        raise InvalidConstraintError(expression or "", "empty constraint")
    groups = [_parse_group(expression, part) for part in expression.split("||")]
    return SemverConstraint(expression, groups)
