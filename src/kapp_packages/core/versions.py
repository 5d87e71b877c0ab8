"""Grouping of Package records into ordered version sets."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import semver

from kapp_packages.core.constraints import parse_constraint
from kapp_packages.exception import MalformedVersionError
from kapp_packages.models.resources import PackageRecord

logger = logging.getLogger(__name__)


def parse_version(text: str) -> semver.Version:
    """Parse a version string, accepting a leading "v" and missing minor/patch.

    Raises:
        ValueError: If text is not semver compatible
    """
    if text is None:
        raise ValueError("version is empty")
    candidate = text.strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]
    if not candidate:
        raise ValueError("version is empty")
    return semver.Version.parse(candidate, optional_minor_and_patch=True)


@dataclass(frozen=True)
class PackageSemver:
    """A Package record paired with its parsed version."""

    package: PackageRecord
    version: semver.Version


@dataclass
class VersionedPackage:
    """All versions of one logical package, newest first."""

    ref_name: str
    versions: List[PackageSemver] = field(default_factory=list)

    @property
    def latest(self) -> PackageSemver:
        return self.versions[0]

    def find(self, version: str) -> Optional[PackageSemver]:
        """Return the entry whose version equals version, if any."""
        try:
            wanted = parse_version(version)
        except ValueError:
            return None
        for entry in self.versions:
            if entry.version.compare(wanted) == 0:
                return entry
        return None


def build_version_map(packages: Iterable[PackageRecord]) -> Dict[str, VersionedPackage]:
    """Group Package records by logical name with versions sorted descending.

    Equal versions keep their input order.

    Args:
        packages: Package records, in any order

    Returns:
        Mapping from refName to its VersionedPackage

    Raises:
        MalformedVersionError: If any record's version is not semver compatible
    """
    version_map: Dict[str, VersionedPackage] = {}
    for package in packages:
        try:
            version = parse_version(package.spec.version)
        except ValueError as err:
            raise MalformedVersionError(
                package.metadata.name, package.spec.version
            ) from err
        ref_name = package.spec.ref_name
        entry = version_map.setdefault(ref_name, VersionedPackage(ref_name=ref_name))
        entry.versions.append(PackageSemver(package=package, version=version))

    for entry in version_map.values():
        entry.versions.sort(key=lambda v: v.version, reverse=True)
    return version_map


def latest_matching_version(
    versions: List[PackageSemver], constraints: Optional[str]
) -> Optional[semver.Version]:
    """Return the highest version satisfying the constraint expression.

    Args:
        versions: Versions sorted descending
        constraints: Constraint expression, e.g. ">1.0.0 <2.0.0 || 3.0.0"

    Returns:
        The first matching version, or None when nothing matches or no
        constraint is set

    Raises:
        InvalidConstraintError: If constraints cannot be parsed
    """
    if not constraints or not constraints.strip():
        return None
    constraint = parse_constraint(constraints)
    for entry in versions:
        if constraint.check(entry.version):
            return entry.version
    return None
