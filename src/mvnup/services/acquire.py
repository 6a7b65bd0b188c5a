import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Iterable, List, Optional, Tuple, TypeVar

from ..cache import LocalCache
from ..domain.errors import (
    CacheMismatchError,
    IntegrityError,
    MvnupError,
    NoBinariesError,
    NoSupportedArtifactError,
)
from ..domain.models import (
    BatchListing,
    BinaryArtifact,
    Version,
    VersionBinaries,
    VersionConstraint,
)
from ..site.catalog import VersionCatalog
from ..site.http import HttpClient
from ..site.locator import ArtifactLocator
from ..site.metadata import MetadataFetcher
from ..system.platform import ARCHIVE_SUFFIXES, PlatformQuery
from ..ui.progress import ProgressManager

logger = logging.getLogger(__name__)

K = TypeVar("K")
T = TypeVar("T")


async def _gather_tolerant(
    jobs: Iterable[Tuple[K, Awaitable[T]]]
) -> Tuple[List[Tuple[K, T]], List[Tuple[K, MvnupError]]]:
    """
    run jobs concurrently and split them into successes and failures.

    one job failing does not stop the others. only our own errors count as
    tolerated failures, anything else is re-raised.
    """
    jobs = list(jobs)
    results = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)

    successes, failures = [], []
    for (key, _), result in zip(jobs, results):
        if isinstance(result, MvnupError):
            failures.append((key, result))
        elif isinstance(result, BaseException):
            raise result
        else:
            successes.append((key, result))
    return successes, failures


class AcquisitionManager:
    """resolves a version, picks its binary for this host and gets it into the cache."""

    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        http: HttpClient,
        catalog: VersionCatalog,
        locator: ArtifactLocator,
        fetcher: MetadataFetcher,
        platform: PlatformQuery = None,
        progress_manager: ProgressManager = None,
    ):
        self.http = http
        self.catalog = catalog
        self.locator = locator
        self.fetcher = fetcher
        self.platform = platform or PlatformQuery()
        self.progress_manager = progress_manager or ProgressManager(enabled=False)

    @classmethod
    def create(
        cls,
        http: HttpClient,
        mirror: str,
        product_path: str,
        platform: PlatformQuery = None,
        progress_manager: ProgressManager = None,
    ) -> "AcquisitionManager":
        return cls(
            http,
            VersionCatalog(http, mirror, product_path),
            ArtifactLocator(http, mirror, product_path),
            MetadataFetcher(http),
            platform,
            progress_manager,
        )

    async def resolve_version(self, pattern: Optional[str] = None) -> Version:
        """latest version when no pattern is given, else the newest match."""
        if not pattern:
            return await self.catalog.latest()
        return await self.catalog.match(VersionConstraint.parse(pattern))

    async def list_binaries(self, version: Version) -> List[BinaryArtifact]:
        """
        discover every binary of a version with its metadata and digest.

        binaries whose lookup fails are logged and left out.

        raises:
            NoBinariesError: if no binary could be assembled.
        """
        listing = await self.locator.list_binary_urls(version)
        logger.debug("fetching metadata for %d binaries of %s", len(listing.binary_urls), version)
        successes, failures = await _gather_tolerant(
            (url, self.fetcher.fetch(url, listing.body)) for url in listing.binary_urls
        )
        for url, error in failures:
            logger.warning("failed to fetch binary %s: %s", url, error)

        artifacts = [artifact for _, artifact in successes]
        if not artifacts:
            raise NoBinariesError(str(version), [e for _, e in failures])
        return artifacts

    async def list_many(self, versions: Iterable[Version]) -> BatchListing:
        """
        list binaries for several versions at once.

        a version that fails is dropped with a warning and counted in the
        result's failures.

        raises:
            NoBinariesError: if every version failed.
        """
        versions = list(versions)
        logger.debug("fetching bins with %d tasks", len(versions))
        successes, failures = await _gather_tolerant(
            (version, self.list_binaries(version)) for version in versions
        )
        for version, error in failures:
            logger.warning("failed to fetch bins for version %s: %s", version, error)

        if not successes:
            raise NoBinariesError(
                ", ".join(str(v) for v in versions) or "(no versions)",
                [e for _, e in failures],
            )
        return BatchListing(
            entries=[VersionBinaries(version=v, binaries=b) for v, b in successes],
            failures=[(v, str(e)) for v, e in failures],
        )

    def select_binary(self, artifacts: List[BinaryArtifact]) -> BinaryArtifact:
        """
        pick the artifact to install.

        suffixes are tried in preference order, skipping those the host
        cannot unpack; the first artifact with the first usable suffix wins.
        """
        for suffix in ARCHIVE_SUFFIXES:
            if not self.platform.can_extract(suffix):
                logger.debug("no tool to extract %s on this host", suffix)
                continue
            for artifact in artifacts:
                if artifact.filename.endswith(suffix):
                    logger.debug("selected %s", artifact.filename)
                    return artifact
        raise NoSupportedArtifactError([a.filename for a in artifacts])

    @staticmethod
    def _mismatch(path: Path, artifact: BinaryArtifact) -> Optional[str]:
        """describe why the file at path is not the artifact, or None if it is."""
        size = path.stat().st_size
        if size != artifact.size:
            return f"size {size} != expected {artifact.size}"
        if artifact.digest is not None and not artifact.digest.matches_file(path):
            return f"{artifact.digest.algorithm.value} digest differs from {artifact.digest.value}"
        return None

    async def acquire(self, artifact: BinaryArtifact, cache_dir: Path, force: bool = False) -> Path:
        """
        make sure the artifact is in the cache and return its path.

        a cached file counts only if its size (and digest, when known)
        matches; a mismatching file is an error unless force is set, in
        which case it is downloaded again.

        raises:
            CacheMismatchError: if a different file sits at the cache path.
            IntegrityError: if the downloaded bytes fail verification.
            TransportError: if the download fails.
        """
        loop = asyncio.get_running_loop()
        cache = await loop.run_in_executor(None, LocalCache, cache_dir)
        target = cache.get_artifact_path(artifact.filename)

        if await loop.run_in_executor(None, cache.has_artifact, artifact.filename):
            reason = await loop.run_in_executor(None, self._mismatch, target, artifact)
            if reason is None:
                logger.info("using cached %s", target)
                return target
            if not force:
                raise CacheMismatchError(str(target), reason)
            logger.warning("replacing cached %s: %s", target, reason)

        await self._download(artifact, target)
        return target

    async def _download(self, artifact: BinaryArtifact, target: Path):
        loop = asyncio.get_running_loop()
        partial_path = target.with_name(target.name + ".part")
        logger.info("downloading %s to %s", artifact.url, target)

        try:
            with self.progress_manager.download(artifact.filename, artifact.size) as advance:
                with open(partial_path, "wb") as f:
                    async with self.http.stream(artifact.url) as response:
                        async for chunk in response.aiter_raw(self.CHUNK_SIZE):
                            await loop.run_in_executor(None, f.write, chunk)
                            advance(len(chunk))
                    await loop.run_in_executor(None, f.flush)
                    await loop.run_in_executor(None, os.fsync, f.fileno())

            reason = await loop.run_in_executor(None, self._mismatch, partial_path, artifact)
            if reason is not None:
                raise IntegrityError(artifact.filename, reason)
            await loop.run_in_executor(None, os.replace, partial_path, target)
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise
        logger.info("downloaded %s (%d bytes)", artifact.filename, artifact.size)

    async def prepare(
        self, pattern: Optional[str], cache_dir: Path, force: bool = False
    ) -> Tuple[Version, BinaryArtifact, Path]:
        """resolve, list, select and acquire in one go."""
        version = await self.resolve_version(pattern)
        artifacts = await self.list_binaries(version)
        artifact = self.select_binary(artifacts)
        path = await self.acquire(artifact, cache_dir, force=force)
        return version, artifact, path
