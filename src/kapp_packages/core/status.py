"""Projection of kapp-controller reconciliation conditions into API statuses."""

import logging
from enum import Enum
from typing import Optional

from kapp_packages.constants import (
    CONDITION_DELETE_FAILED,
    CONDITION_DELETING,
    CONDITION_RECONCILE_FAILED,
    CONDITION_RECONCILE_SUCCEEDED,
    CONDITION_RECONCILING,
    CONDITION_VALUES_SCHEMA_CHECK_FAILED,
)
from kapp_packages.models.resources import Condition, ReconcileStatus
from kapp_packages.schemas.packages import (
    InstalledPackageStatus,
    InstalledPackageStatusReason,
)
from kapp_packages.schemas.repositories import (
    PackageRepositoryStatus,
    PackageRepositoryStatusReason,
)

logger = logging.getLogger(__name__)


class StatusReason(str, Enum):
    """Coarse reconciliation state shared by installs and repositories."""

    UNSPECIFIED = "unspecified"
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


_REASONS = {
    CONDITION_RECONCILE_SUCCEEDED: StatusReason.SUCCESS,
    CONDITION_RECONCILING: StatusReason.PENDING,
    CONDITION_DELETING: StatusReason.PENDING,
    CONDITION_RECONCILE_FAILED: StatusReason.FAILED,
    CONDITION_DELETE_FAILED: StatusReason.FAILED,
    CONDITION_VALUES_SCHEMA_CHECK_FAILED: StatusReason.FAILED,
}

_USER_REASONS = {
    CONDITION_RECONCILE_SUCCEEDED: "Deployed",
    CONDITION_RECONCILING: "Reconciling",
    CONDITION_DELETING: "Deleting",
    CONDITION_RECONCILE_FAILED: "Reconcile failed",
    CONDITION_DELETE_FAILED: "Delete failed",
    CONDITION_VALUES_SCHEMA_CHECK_FAILED: "Values schema check failed",
}

_INSTALLED_REASONS = {
    StatusReason.UNSPECIFIED: InstalledPackageStatusReason.UNSPECIFIED,
    StatusReason.SUCCESS: InstalledPackageStatusReason.INSTALLED,
    StatusReason.FAILED: InstalledPackageStatusReason.FAILED,
    StatusReason.PENDING: InstalledPackageStatusReason.PENDING,
}

_REPOSITORY_REASONS = {
    StatusReason.UNSPECIFIED: PackageRepositoryStatusReason.UNSPECIFIED,
    StatusReason.SUCCESS: PackageRepositoryStatusReason.SUCCESS,
    StatusReason.FAILED: PackageRepositoryStatusReason.FAILED,
    StatusReason.PENDING: PackageRepositoryStatusReason.PENDING,
}

NO_STATUS_USER_REASON = "No status information yet"
UNKNOWN_USER_REASON = "Unknown"


def status_reason_for_condition(condition: Optional[Condition]) -> StatusReason:
    if condition is None:
        return StatusReason.UNSPECIFIED
    return _REASONS.get(condition.type, StatusReason.UNSPECIFIED)


def user_reason_for_condition(condition: Optional[Condition]) -> str:
    if condition is None or not condition.type:
        return NO_STATUS_USER_REASON
    return _USER_REASONS.get(condition.type, UNKNOWN_USER_REASON)


def _latest_condition(status: ReconcileStatus, subject: str) -> Optional[Condition]:
    if len(status.conditions) > 1:
        logger.warning(
            f"{subject} has {len(status.conditions)} conditions, using the first one"
        )
    return status.latest_condition


def project_status(
    status: ReconcileStatus, detailed: bool = False, subject: str = "resource"
) -> tuple[bool, StatusReason, str]:
    """Collapse a reconciliation status into (ready, reason, user reason).

    Args:
        status: Decoded status block
        detailed: Prefer the long-form useful error message when present
        subject: Resource description used in log messages

    Returns:
        Tuple of ready flag, coarse reason and human-readable reason
    """
    condition = _latest_condition(status, subject)
    ready = condition is not None and condition.type == CONDITION_RECONCILE_SUCCEEDED
    reason = status_reason_for_condition(condition)
    user_reason = user_reason_for_condition(condition)
    if detailed and status.useful_error_message:
        user_reason = status.useful_error_message
    return ready, reason, user_reason


def installed_package_status(
    status: ReconcileStatus, detailed: bool = False, subject: str = "PackageInstall"
) -> InstalledPackageStatus:
    ready, reason, user_reason = project_status(status, detailed, subject)
    return InstalledPackageStatus(
        ready=ready, reason=_INSTALLED_REASONS[reason], user_reason=user_reason
    )


def repository_status(
    status: ReconcileStatus, detailed: bool = False, subject: str = "PackageRepository"
) -> PackageRepositoryStatus:
    ready, reason, user_reason = project_status(status, detailed, subject)
    return PackageRepositoryStatus(
        ready=ready, reason=_REPOSITORY_REASONS[reason], user_reason=user_reason
    )
