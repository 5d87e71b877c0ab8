"""Trimming of long version lists for display."""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import semver


@dataclass(frozen=True)
class VersionsInSummary:
    """How many majors, minors per major and patches per minor to keep."""

    major: int = 3
    minor: int = 3
    patch: int = 3


def summarize_versions(
    versions: List[semver.Version], policy: VersionsInSummary
) -> List[semver.Version]:
    """Keep the newest versions of each release line.

    Args:
        versions: Versions sorted descending
        policy: Limits per major, minor and patch level

    Returns:
        Subset of versions, still sorted descending
    """
    majors: List[int] = []
    minors: Dict[int, List[int]] = {}
    patches: Dict[Tuple[int, int], int] = {}
    kept = []

    for version in versions:
        if version.major not in majors:
            if len(majors) >= policy.major:
                continue
            majors.append(version.major)
            minors[version.major] = []

        major_minors = minors[version.major]
        if version.minor not in major_minors:
            if len(major_minors) >= policy.minor:
                continue
            major_minors.append(version.minor)
            patches[(version.major, version.minor)] = 0

        minor_key = (version.major, version.minor)
        if patches[minor_key] >= policy.patch:
            continue
        patches[minor_key] += 1
        kept.append(version)

    return kept
