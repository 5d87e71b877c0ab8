"""Merge join of PackageMetadata records with their Package versions.

Package objects are streamed by a producer task through a bounded queue,
sorted by (namespace, refName). Consumers walk metadata records sorted by the
same key with a single forward cursor, so neither side is held twice in
memory for available-package listings.
"""

import asyncio
import logging
from collections import defaultdict
from typing import (
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
)

from kapp_packages.constants import DEFAULT_VERSION_QUEUE_SIZE
from kapp_packages.core.versions import VersionedPackage, build_version_map
from kapp_packages.exception import MissingVersionsError
from kapp_packages.models.resources import (
    PackageInstallRecord,
    PackageMetadataRecord,
    PackageRecord,
)

logger = logging.getLogger(__name__)

PackageFetcher = Callable[[], Awaitable[List[PackageRecord]]]

_END_OF_STREAM = object()


def package_join_key(package: PackageRecord) -> Tuple[str, str]:
    return (package.metadata.namespace, package.spec.ref_name)


def metadata_join_key(metadata: PackageMetadataRecord) -> Tuple[str, str]:
    return (metadata.metadata.namespace, metadata.metadata.name)


class PackageVersionStream:
    """Async context manager streaming Package records from a producer task.

    The producer fetches all Package records, sorts them by join key and puts
    them on a queue of at most maxsize entries, followed by an end marker. A
    producer failure is stored in error and the end marker is still sent.
    Leaving the context cancels a producer that is still running.

    Attributes:
        error: Exception raised by the producer, if any
    """

    def __init__(self, fetch: PackageFetcher, maxsize: int = DEFAULT_VERSION_QUEUE_SIZE):
        self._fetch = fetch
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None
        self._exhausted = False
        self.error: Optional[BaseException] = None

    async def __aenter__(self) -> "PackageVersionStream":
        self._task = asyncio.create_task(self._produce())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.debug("Package version producer cancelled before completion")

    async def _produce(self) -> None:
        try:
            packages = await self._fetch()
            for package in sorted(packages, key=package_join_key):
                await self._queue.put(package)
        except asyncio.CancelledError:
            raise
        except Exception as err:
            logger.error(f"Package version producer failed: {err}")
            self.error = err
        await self._queue.put(_END_OF_STREAM)

    async def next(self) -> Optional[PackageRecord]:
        """Return the next Package record, or None once the stream is done."""
        if self._exhausted:
            return None
        item = await self._queue.get()
        if item is _END_OF_STREAM:
            self._exhausted = True
            return None
        return item

    def raise_for_error(self) -> None:
        """Re-raise the producer's failure, if it had one."""
        if self.error is not None:
            raise self.error


async def join_available_summaries(
    metadatas: Sequence[PackageMetadataRecord], stream: PackageVersionStream
) -> List[Tuple[PackageMetadataRecord, VersionedPackage]]:
    """Pair each metadata record with its versions.

    Args:
        metadatas: Metadata records sorted by (namespace, name)
        stream: Open stream of Package records

    Returns:
        (metadata, versions) pairs in metadata order

    Raises:
        MissingVersionsError: If a metadata record has no Package versions
        MalformedVersionError: If a version string is not semver compatible
    """
    results: List[Tuple[PackageMetadataRecord, VersionedPackage]] = []
    current = await stream.next()

    for metadata in metadatas:
        key = metadata_join_key(metadata)
        while current is not None and package_join_key(current) < key:
            logger.debug(
                f"Skipping Package {current.metadata.name!r} with no PackageMetadata "
                f"in the requested page"
            )
            current = await stream.next()

        run: List[PackageRecord] = []
        while current is not None and package_join_key(current) == key:
            run.append(current)
            current = await stream.next()

        if not run:
            stream.raise_for_error()
            raise MissingVersionsError(metadata.metadata.name)

        version_map = build_version_map(run)
        results.append((metadata, version_map[metadata.metadata.name]))

    stream.raise_for_error()
    return results


async def join_installed_summaries(
    installs: Sequence[PackageInstallRecord],
    metadatas: Sequence[PackageMetadataRecord],
    stream: PackageVersionStream,
    global_namespace: str,
) -> List[Tuple[PackageInstallRecord, PackageMetadataRecord, VersionedPackage]]:
    """Pair each install with its metadata and versions.

    Metadata and versions are looked up in the install's namespace first and
    then in the global packaging namespace. Installs whose package cannot be
    resolved are skipped with a warning.

    Args:
        installs: Installs in result order
        metadatas: Metadata records of the install namespaces and the global namespace
        stream: Open stream of Package records for the same namespaces
        global_namespace: Global packaging namespace

    Returns:
        (install, metadata, versions) triples in install order
    """
    metadata_index: Dict[Tuple[str, str], PackageMetadataRecord] = {
        metadata_join_key(metadata): metadata for metadata in metadatas
    }

    packages_by_key: Dict[Tuple[str, str], List[PackageRecord]] = defaultdict(list)
    current = await stream.next()
    while current is not None:
        packages_by_key[package_join_key(current)].append(current)
        current = await stream.next()
    stream.raise_for_error()

    version_maps: Dict[Tuple[str, str], VersionedPackage] = {}
    results = []
    for install in installs:
        ref_name = install.spec.package_ref.ref_name
        namespace = install.metadata.namespace
        metadata = metadata_index.get((namespace, ref_name)) or metadata_index.get(
            (global_namespace, ref_name)
        )
        if metadata is None:
            logger.warning(
                f"Skipping PackageInstall {namespace}/{install.metadata.name}: "
                f"no PackageMetadata {ref_name!r} in {namespace!r} or {global_namespace!r}"
            )
            continue

        key = metadata_join_key(metadata)
        if key not in version_maps:
            packages = packages_by_key.get(key)
            if not packages:
                logger.warning(
                    f"Skipping PackageInstall {namespace}/{install.metadata.name}: "
                    f"no Package versions for {ref_name!r} in {key[0]!r}"
                )
                continue
            version_maps[key] = build_version_map(packages)[ref_name]
        results.append((install, metadata, version_maps[key]))

    return results
