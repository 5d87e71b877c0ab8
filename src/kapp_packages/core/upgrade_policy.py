"""Version constraints written into new PackageInstalls."""

from enum import Enum

import semver


class UpgradePolicy(str, Enum):
    """How far kapp-controller may move an install past its chosen version."""

    NONE = "none"
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


def version_constraint_for_policy(version: semver.Version, policy: UpgradePolicy) -> str:
    """Build the versionSelection constraint for version under policy.

    Args:
        version: Version chosen by the user
        policy: Upgrade policy

    Returns:
        Constraint expression, e.g. ">=1.2.3 <1.3.0" for the patch policy
    """
    pinned = str(version)
    if policy == UpgradePolicy.MAJOR:
        return f">={pinned}"
    if policy == UpgradePolicy.MINOR:
        return f">={pinned} <{version.bump_major()}"
    if policy == UpgradePolicy.PATCH:
        return f">={pinned} <{version.bump_minor()}"
    return pinned
