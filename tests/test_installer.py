"""Tests for the concurrent package installer."""

import asyncio
from unittest.mock import MagicMock

import aiohttp
import pytest

from lock.model import ArtifactDescriptor, AutoloadDirectives, LockManifest, Package
from pkginstall.cache import ArtifactCache
from pkginstall.errors import (
    ExtractionFailure,
    InstallTaskFault,
    MissingArtifactDescriptor,
    NetworkFailure,
    UnsupportedDistributionKind,
)
from pkginstall.installer import PackageInstaller, install_manifest


def _zip_pkg(name, url, reference, version="1.0.0"):
    return Package(name=name, version=version, package_type="library",
                   dist=ArtifactDescriptor(kind="zip", url=url, reference=reference))


def _install(manifest, cache, vendor, downloader, **kwargs):
    installer = PackageInstaller(cache, downloader, vendor, **kwargs)
    return asyncio.run(installer.install(manifest))


def _tree(root):
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*")) if p.is_file()
    }


class TestInstallScenario:
    """End-to-end install of a single zip package."""

    def test_fetch_cache_and_extract(self, tmp_path, make_zip, fake_downloader):
        """A cold run fetches once, writes the cache and extracts without the wrapper."""
        url = "https://example/widget.zip"
        data = make_zip({"src/Widget.php": "<?php class Widget {}", "composer.json": "{}"})
        manifest = LockManifest("hash", (_zip_pkg("acme/widget", url, "abc123"),))
        cache = ArtifactCache(tmp_path / "cache")
        vendor = tmp_path / "vendor"
        downloader = fake_downloader({url: data})

        report = _install(manifest, cache, vendor, downloader)

        assert downloader.urls == [url]
        assert (tmp_path / "cache" / "archives" / "abc123.zip").read_bytes() == data
        assert (vendor / "acme" / "widget" / "src" / "Widget.php").exists()
        assert (vendor / "acme" / "widget" / "composer.json").exists()
        assert report.installed == ["acme/widget"]
        assert report.from_cache == []
        assert report.ok

    def test_warm_cache_makes_no_fetch(self, tmp_path, make_zip, fake_downloader):
        """A second run with the same manifest performs zero fetches and yields the same tree."""
        url = "https://example/widget.zip"
        data = make_zip({"src/Widget.php": "<?php class Widget {}"})
        manifest = LockManifest("hash", (_zip_pkg("acme/widget", url, "abc123"),))
        cache = ArtifactCache(tmp_path / "cache")
        vendor = tmp_path / "vendor"

        _install(manifest, cache, vendor, fake_downloader({url: data}))
        first_tree = _tree(vendor)

        second = fake_downloader({})
        report = _install(manifest, cache, vendor, second)

        assert second.urls == []
        assert report.from_cache == ["acme/widget"]
        assert _tree(vendor) == first_tree

    def test_shared_reference_reuses_cache_entry(self, tmp_path, make_zip, fake_downloader):
        """Packages with the same reference resolve to the same cache blob."""
        data = make_zip({"a.php": "<?php"})
        cache = ArtifactCache(tmp_path / "cache")
        cache.store("shared", data)
        manifest = LockManifest("hash", (
            _zip_pkg("a/one", "https://example/one.zip", "shared"),
            _zip_pkg("a/two", "https://example/two.zip", "shared"),
        ))
        downloader = fake_downloader({})

        report = _install(manifest, cache, tmp_path / "vendor", downloader)

        assert downloader.urls == []
        assert sorted(report.from_cache) == ["a/one", "a/two"]
        assert (tmp_path / "vendor" / "a" / "two" / "a.php").exists()


class TestValidation:
    """Descriptor validation and virtual packages."""

    def test_missing_descriptor_fails_run(self, tmp_path, make_zip, fake_downloader):
        """A package without dist or source fails before any work starts."""
        url = "https://example/ok.zip"
        manifest = LockManifest("hash", (
            _zip_pkg("a/ok", url, "r1"),
            Package(name="a/broken", version="1.0.0"),
        ))
        downloader = fake_downloader({url: make_zip({"a.php": "<?php"})})

        with pytest.raises(MissingArtifactDescriptor) as exc:
            _install(manifest, ArtifactCache(tmp_path / "cache"), tmp_path / "vendor", downloader)

        assert exc.value.package == "a/broken"
        assert downloader.urls == []

    def test_metapackage_needs_no_descriptor(self, tmp_path, fake_downloader):
        """Metapackages are skipped and never require a descriptor."""
        manifest = LockManifest("hash", (
            Package(name="a/meta", version="1.0.0", package_type="metapackage",
                    autoload=AutoloadDirectives(files=("boot.php",))),
        ))

        report = _install(manifest, ArtifactCache(tmp_path / "cache"), tmp_path / "vendor",
                          fake_downloader({}))

        assert report.skipped == ["a/meta"]
        assert report.installed == []
        assert not (tmp_path / "vendor" / "a" / "meta").exists()

    def test_source_used_when_no_dist(self, tmp_path, make_zip, fake_downloader):
        """A zip source descriptor is installed when dist is absent."""
        url = "https://example/src.zip"
        pkg = Package(name="a/src", version="1.0.0",
                      source=ArtifactDescriptor(kind="zip", url=url, reference="s1"))
        downloader = fake_downloader({url: make_zip({"x.php": "<?php"})})

        _install(LockManifest("hash", (pkg,)), ArtifactCache(tmp_path / "cache"),
                 tmp_path / "vendor", downloader)

        assert (tmp_path / "vendor" / "a" / "src" / "x.php").exists()


class TestFailureAggregation:
    """Per-package failures are collected after every unit has finished."""

    def test_unsupported_kind_after_all_finish(self, tmp_path, make_zip, fake_downloader):
        """The other packages are still installed before the failure is raised."""
        url_a = "https://example/a.zip"
        url_c = "https://example/c.zip"
        manifest = LockManifest("hash", (
            _zip_pkg("v/a", url_a, "ra"),
            Package(name="v/b", version="1.0.0",
                    dist=ArtifactDescriptor(kind="tar", url="https://example/b.tar", reference="rb")),
            _zip_pkg("v/c", url_c, "rc"),
        ))
        downloader = fake_downloader({
            url_a: make_zip({"a.php": "<?php"}),
            url_c: make_zip({"c.php": "<?php"}),
        })
        vendor = tmp_path / "vendor"

        with pytest.raises(UnsupportedDistributionKind) as exc:
            _install(manifest, ArtifactCache(tmp_path / "cache"), vendor, downloader)

        assert exc.value.package == "v/b"
        assert exc.value.artifact_kind == "tar"
        assert sorted(downloader.urls) == [url_a, url_c]
        assert (vendor / "v" / "a" / "a.php").exists()
        assert (vendor / "v" / "c" / "c.php").exists()

    def test_first_failure_in_manifest_order(self, tmp_path, fake_downloader):
        """With several failures the first package's error is raised."""
        manifest = LockManifest("hash", (
            _zip_pkg("v/a", "https://example/a.zip", "ra"),
            _zip_pkg("v/b", "https://example/b.zip", "rb"),
        ))
        downloader = fake_downloader({
            "https://example/a.zip": aiohttp.ClientConnectionError("refused"),
            "https://example/b.zip": b"not a zip",
        })

        with pytest.raises(NetworkFailure) as exc:
            _install(manifest, ArtifactCache(tmp_path / "cache"), tmp_path / "vendor", downloader)

        assert exc.value.package == "v/a"

    def test_http_status_failure(self, tmp_path, fake_downloader):
        """Non-2xx responses become NetworkFailure carrying the status."""
        url = "https://example/missing.zip"
        error = aiohttp.ClientResponseError(MagicMock(), (), status=404, message="Not Found")
        manifest = LockManifest("hash", (_zip_pkg("v/missing", url, "rm"),))

        with pytest.raises(NetworkFailure) as exc:
            _install(manifest, ArtifactCache(tmp_path / "cache"), tmp_path / "vendor",
                     fake_downloader({url: error}))

        assert exc.value.status == 404
        assert exc.value.url == url

    def test_corrupt_archive_not_cached(self, tmp_path, fake_downloader):
        """A failed extraction leaves the cache cold."""
        url = "https://example/bad.zip"
        cache = ArtifactCache(tmp_path / "cache")
        manifest = LockManifest("hash", (_zip_pkg("v/bad", url, "rbad"),))

        with pytest.raises(ExtractionFailure):
            _install(manifest, cache, tmp_path / "vendor", fake_downloader({url: b"garbage"}))

        assert not cache.has("rbad")

    def test_unexpected_exception_is_task_fault(self, tmp_path, fake_downloader):
        """Non-domain exceptions are reported as InstallTaskFault."""
        url = "https://example/boom.zip"
        manifest = LockManifest("hash", (_zip_pkg("v/boom", url, "rboom"),))

        with pytest.raises(InstallTaskFault) as exc:
            _install(manifest, ArtifactCache(tmp_path / "cache"), tmp_path / "vendor",
                     fake_downloader({url: KeyError("unexpected")}))

        assert exc.value.package == "v/boom"
        assert isinstance(exc.value.__cause__, KeyError)


class TestConcurrency:
    """Bounded concurrency and optional fail-fast."""

    def test_concurrency_is_bounded(self, tmp_path, make_zip, fake_downloader):
        """No more than max_concurrency downloads are in flight."""
        data = make_zip({"a.php": "<?php"})
        packages = tuple(
            _zip_pkg(f"v/p{i}", f"https://example/p{i}.zip", f"r{i}") for i in range(10)
        )
        downloader = fake_downloader({p.dist.url: data for p in packages}, delay=0.01)

        report = _install(LockManifest("hash", packages), ArtifactCache(tmp_path / "cache"),
                          tmp_path / "vendor", downloader, max_concurrency=3)

        assert len(report.installed) == 10
        assert 1 <= downloader.max_in_flight <= 3

    def test_invalid_bound(self, tmp_path, fake_downloader):
        with pytest.raises(ValueError):
            PackageInstaller(ArtifactCache(tmp_path), fake_downloader({}), tmp_path, max_concurrency=0)

    def test_fail_fast_cancels_pending(self, tmp_path, make_zip, fake_downloader):
        """fail_fast stops queued installs after the first failure."""
        data = make_zip({"a.php": "<?php"})
        bad = Package(name="v/bad", version="1", dist=ArtifactDescriptor("tar", "https://x/bad", "rb"))
        slow = tuple(_zip_pkg(f"v/s{i}", f"https://example/s{i}.zip", f"s{i}") for i in range(5))
        downloader = fake_downloader({p.dist.url: data for p in slow}, delay=0.05)

        with pytest.raises(UnsupportedDistributionKind):
            _install(LockManifest("hash", (bad,) + slow), ArtifactCache(tmp_path / "cache"),
                     tmp_path / "vendor", downloader, max_concurrency=1, fail_fast=True)

        # at most the unit already holding the slot gets to download
        assert len(downloader.urls) <= 1

    def test_install_manifest_with_injected_downloader(self, tmp_path, make_zip, fake_downloader):
        """install_manifest uses the given downloader instead of opening a session."""
        url = "https://example/w.zip"
        downloader = fake_downloader({url: make_zip({"w.php": "<?php"})})
        manifest = LockManifest("hash", (_zip_pkg("a/w", url, "rw"),))

        report = asyncio.run(install_manifest(
            manifest, ArtifactCache(tmp_path / "cache"), tmp_path / "vendor", downloader=downloader
        ))

        assert report.installed == ["a/w"]
