"""Decoded cluster object records."""

from kapp_packages.models.resources import (
    AppRecord,
    Condition,
    ObjectMeta,
    OwnerReference,
    PackageInstallRecord,
    PackageMetadataRecord,
    PackageRecord,
    PackageRepositoryRecord,
    ResourceModel,
    SecretRecord,
    SecretRef,
    encode_secret_data,
)

__all__ = [
    "AppRecord",
    "Condition",
    "ObjectMeta",
    "OwnerReference",
    "PackageInstallRecord",
    "PackageMetadataRecord",
    "PackageRecord",
    "PackageRepositoryRecord",
    "ResourceModel",
    "SecretRecord",
    "SecretRef",
    "encode_secret_data",
]
