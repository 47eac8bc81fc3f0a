"""Data models for a resolved composer.lock manifest."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from constants import PackageTypes
from pkginstall.errors import MissingArtifactDescriptor

# A PSR mapping value is a single base path or a list of them.
PsrPaths = Union[str, List[str]]


@dataclass(frozen=True)
class ArtifactDescriptor:
    """Locator of a package archive (``dist``) or checkout (``source``)."""
    kind: str  # raw "type" field, e.g. "zip", "git"
    url: str
    reference: str  # content-derived identifier, used as the cache key


@dataclass(frozen=True)
class AutoloadDirectives:
    """Autoload section of a locked package; absent sections are empty."""
    files: Tuple[str, ...] = ()
    psr0: Dict[str, PsrPaths] = field(default_factory=dict)
    psr4: Dict[str, PsrPaths] = field(default_factory=dict)
    classmap: Tuple[str, ...] = ()
    exclude_from_classmap: Tuple[str, ...] = ()

    def psr0_entries(self) -> Iterator[Tuple[str, str]]:
        """Yield ``(prefix, path)`` pairs of the PSR-0 section in declaration order."""
        return _flatten(self.psr0)

    def psr4_entries(self) -> Iterator[Tuple[str, str]]:
        """Yield ``(prefix, path)`` pairs of the PSR-4 section in declaration order."""
        return _flatten(self.psr4)


def _flatten(mapping: Dict[str, PsrPaths]) -> Iterator[Tuple[str, str]]:
    for prefix, paths in mapping.items():
        if isinstance(paths, str):
            yield prefix, paths
        else:
            for path in paths:
                yield prefix, path


@dataclass(frozen=True)
class Package:
    """A single locked package."""
    name: str  # "vendor/project"
    version: str
    package_type: Optional[str] = None
    source: Optional[ArtifactDescriptor] = None
    dist: Optional[ArtifactDescriptor] = None
    autoload: Optional[AutoloadDirectives] = None

    @property
    def is_virtual(self) -> bool:
        """Metapackages have no installable artifact."""
        return self.package_type == PackageTypes.METAPACKAGE.value

    def preferred_descriptor(self) -> ArtifactDescriptor:
        """Return ``dist`` when present, falling back to ``source``.

        Raises:
            MissingArtifactDescriptor: if the package has neither.
        """
        descriptor = self.dist or self.source
        if descriptor is None:
            raise MissingArtifactDescriptor(self.name)
        return descriptor


@dataclass(frozen=True)
class LockManifest:
    """Resolved manifest; loaded once per run and shared read-only."""
    content_hash: str
    packages: Tuple[Package, ...] = ()

    def installable_packages(self) -> Iterator[Package]:
        """Non-virtual packages in manifest order."""
        return (pkg for pkg in self.packages if not pkg.is_virtual)
