"""Concurrent installation of locked packages into a vendor tree.

Each installable package is one independent unit of work: resolve its
descriptor, obtain the archive from the artifact cache or the network, and
extract it into ``<vendor>/<package-name>``. Units run concurrently up to a
configurable bound. By default every unit runs to completion and the first
failure (in manifest order) is raised once all of them have finished.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple, Union

import aiohttp

from constants import ArtifactKind, Constants
from common.http_client import ArtifactDownloader
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from lock.model import ArtifactDescriptor, LockManifest, Package

from .archive import ArchiveError, extract_zip
from .cache import ArtifactCache
from .errors import (
    ExtractionFailure,
    InstallError,
    InstallTaskFault,
    NetworkFailure,
    UnsupportedDistributionKind,
)

logger = logging.getLogger(__name__)


class Downloader(Protocol):
    """Anything able to fetch archive bytes for a URL."""

    async def fetch(self, url: str) -> bytes:
        ...


@dataclass
class InstallReport:
    """Outcome of an install run."""

    installed: List[str] = field(default_factory=list)
    from_cache: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: Dict[str, InstallError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class PackageInstaller:
    """Install every non-virtual package of a manifest."""

    def __init__(
        self,
        cache: ArtifactCache,
        downloader: Downloader,
        vendor_root: Union[str, Path],
        max_concurrency: int = Constants.MAX_CONCURRENCY,
        fail_fast: bool = Constants.FAIL_FAST,
    ):
        """Initialize the installer.

        Args:
            cache: Archive cache shared by all units of work.
            downloader: Archive fetcher used on cache misses.
            vendor_root: Directory receiving one subdirectory per package.
            max_concurrency: Upper bound of units of work in flight.
            fail_fast: Cancel outstanding units after the first failure.
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._cache = cache
        self._downloader = downloader
        self._vendor_root = Path(vendor_root)
        self._max_concurrency = max_concurrency
        self._fail_fast = fail_fast

    async def install(self, manifest: LockManifest) -> InstallReport:
        """Install all packages, then raise the first failure if any.

        Raises:
            MissingArtifactDescriptor: before any work starts, for the first
                non-virtual package lacking both dist and source.
            InstallError: the first per-package failure, after every unit
                of work has finished.
        """
        report = InstallReport()
        work: List[Tuple[Package, ArtifactDescriptor]] = []
        for package in manifest.packages:
            if package.is_virtual:
                logger.info("Skipping metapackage %s", package.name)
                report.skipped.append(package.name)
                continue
            work.append((package, package.preferred_descriptor()))

        semaphore = asyncio.Semaphore(self._max_concurrency)
        tasks = [
            asyncio.ensure_future(self._run_unit(package, descriptor, semaphore, report))
            for package, descriptor in work
        ]
        if not tasks:
            return report

        with Timer() as t:
            if self._fail_fast:
                await self._wait_fail_fast(tasks)
            results = await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(
            "Installed %d packages (%d from cache) in %.0f ms, %d failed",
            len(report.installed),
            len(report.from_cache),
            t.duration_ms(),
            len(report.failures),
        )

        for result in results:
            if isinstance(result, asyncio.CancelledError):
                continue
            if isinstance(result, BaseException):
                raise result
        return report

    async def _wait_fail_fast(self, tasks: List["asyncio.Future[None]"]) -> None:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        if pending:
            logger.warning("Cancelling %d pending installs after a failure", len(pending))
            for task in pending:
                task.cancel()

    async def _run_unit(
        self,
        package: Package,
        descriptor: ArtifactDescriptor,
        semaphore: asyncio.Semaphore,
        report: InstallReport,
    ) -> None:
        async with semaphore:
            logger.info("Installing %s in version %s", package.name, package.version)
            try:
                cached = await self._install_package(package, descriptor)
            except InstallError as e:
                logger.error("Failed to install %s (%s): %s", package.name, e.kind, e.message)
                report.failures[package.name] = e
                raise
            except asyncio.CancelledError:
                raise
            except Exception as e:  # pylint: disable=broad-exception-caught
                fault = InstallTaskFault(package.name, f"unexpected {type(e).__name__}: {e}")
                logger.error("Install task for %s faulted: %s", package.name, e)
                report.failures[package.name] = fault
                raise fault from e

        report.installed.append(package.name)
        if cached:
            report.from_cache.append(package.name)

    async def _install_package(self, package: Package, descriptor: ArtifactDescriptor) -> bool:
        """Run one unit of work; return True when the archive came from the cache."""
        if descriptor.kind != ArtifactKind.ZIP.value:
            raise UnsupportedDistributionKind(package.name, descriptor.kind)

        extension = ArtifactKind.ZIP.value
        destination = self._vendor_root / package.name

        cached = await asyncio.to_thread(self._cache.has, descriptor.reference, extension)
        if cached:
            data = await asyncio.to_thread(self._cache.read, descriptor.reference, extension)
        else:
            data = await self._download(package, descriptor)

        await asyncio.to_thread(destination.mkdir, parents=True, exist_ok=True)
        try:
            await asyncio.to_thread(extract_zip, data, destination, True)
        except ArchiveError as e:
            raise ExtractionFailure(package.name, str(e)) from e

        # Persist only after a successful extraction
        if not cached:
            await asyncio.to_thread(self._cache.store, descriptor.reference, data, extension)

        if is_debug_enabled(logger):
            logger.debug(
                "Package installed",
                extra=extra_context(
                    event="package_installed",
                    component="installer",
                    package=package.name,
                    version=package.version,
                    from_cache=cached,
                    target=str(destination),
                ),
            )
        return cached

    async def _download(self, package: Package, descriptor: ArtifactDescriptor) -> bytes:
        try:
            return await self._downloader.fetch(descriptor.url)
        except aiohttp.ClientResponseError as e:
            raise NetworkFailure(
                package.name, safe_url(descriptor.url), f"HTTP {e.status}", status=e.status
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            reason = str(e) or type(e).__name__
            raise NetworkFailure(package.name, safe_url(descriptor.url), reason) from e


async def install_manifest(
    manifest: LockManifest,
    cache: ArtifactCache,
    vendor_root: Union[str, Path],
    max_concurrency: int = Constants.MAX_CONCURRENCY,
    fail_fast: bool = Constants.FAIL_FAST,
    downloader: Optional[Downloader] = None,
) -> InstallReport:
    """Install a manifest, owning the HTTP session unless a downloader is given."""
    if downloader is not None:
        installer = PackageInstaller(cache, downloader, vendor_root, max_concurrency, fail_fast)
        return await installer.install(manifest)

    async with ArtifactDownloader(max_connections=max_concurrency) as owned:
        installer = PackageInstaller(cache, owned, vendor_root, max_concurrency, fail_fast)
        return await installer.install(manifest)


def install_manifest_sync(manifest: LockManifest, cache: ArtifactCache, vendor_root, **kwargs) -> InstallReport:
    """Blocking wrapper around :func:`install_manifest` for the CLI."""
    return asyncio.run(install_manifest(manifest, cache, vendor_root, **kwargs))
