"""Autoload index structures built from the packages' autoload directives.

The builder is a pure function of the manifest: it honours the directives of
every package, installed or virtual, and never touches the disk. The resulting
structures mirror what the static autoloader of a PHP runtime looks up:

* ``files``: xxh3-64 of the declared file entry -> ``<package>/<file>``
* ``psr0``: first character -> prefix -> ordered set of base paths
* ``psr4_paths``: prefix -> base paths in manifest order
* ``psr4_prefixes``: first character -> prefix -> prefix length
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Protocol

import xxhash

from lock.model import LockManifest

logger = logging.getLogger(__name__)

FilesIndex = Dict[str, str]
Psr0Index = Dict[str, Dict[str, Dict[str, int]]]
Psr4PathsIndex = Dict[str, List[str]]
Psr4PrefixIndex = Dict[str, Dict[str, int]]


@dataclass(frozen=True)
class AutoloadIndex:
    """Index structures handed to the renderer; not mutated after building."""
    content_hash: str
    files: FilesIndex = field(default_factory=dict)
    psr0: Psr0Index = field(default_factory=dict)
    psr4_paths: Psr4PathsIndex = field(default_factory=dict)
    psr4_prefixes: Psr4PrefixIndex = field(default_factory=dict)
    # Directories registered under an empty namespace prefix
    psr0_fallback_dirs: List[str] = field(default_factory=list)
    psr4_fallback_dirs: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        """JSON-serializable view, PSR-0 path sets rendered as lists."""
        return {
            "content-hash": self.content_hash,
            "files": dict(self.files),
            "psr-0": {
                letter: {prefix: list(paths) for prefix, paths in prefixes.items()}
                for letter, prefixes in self.psr0.items()
            },
            "psr-4": {prefix: list(paths) for prefix, paths in self.psr4_paths.items()},
            "psr-4-prefix-lengths": {
                letter: dict(prefixes) for letter, prefixes in self.psr4_prefixes.items()
            },
            "psr-0-fallback": list(self.psr0_fallback_dirs),
            "psr-4-fallback": list(self.psr4_fallback_dirs),
        }


class AutoloadRenderer(Protocol):
    """Writes the PHP autoload files from the built indexes."""

    def render(self, index: AutoloadIndex, classmap: Dict[str, str], vendor_root: Path) -> None:
        ...


def file_identifier_hash(identifier: str) -> str:
    """Decimal string of the 64-bit XXH3 hash of a ``files`` autoload entry."""
    return str(xxhash.xxh3_64_intdigest(identifier.encode("utf-8")))


def prefix_length(prefix: str) -> int:
    """Length of a namespace prefix as the PHP runtime measures it (bytes)."""
    return len(prefix.encode("utf-8"))


def build_autoload_index(manifest: LockManifest) -> AutoloadIndex:
    """Build the autoload indexes from every package of ``manifest``."""
    files: FilesIndex = {}
    psr0: Psr0Index = {}
    psr4_paths: Psr4PathsIndex = {}
    psr4_prefixes: Psr4PrefixIndex = {}
    psr0_fallback: List[str] = []
    psr4_fallback: List[str] = []

    for package in manifest.packages:
        autoload = package.autoload
        if autoload is None:
            continue

        for file in autoload.files:
            files[file_identifier_hash(file)] = f"{package.name}/{file}"

        for prefix, path in autoload.psr0_entries():
            base = f"{package.name}/{path}"
            if not prefix:
                psr0_fallback.append(base)
                continue
            psr0.setdefault(prefix[0], {}).setdefault(prefix, {})[base] = 1

        for prefix, path in autoload.psr4_entries():
            base = f"{package.name}/{path}"
            if not prefix:
                psr4_fallback.append(base)
                continue
            psr4_paths.setdefault(prefix, []).append(base)
            psr4_prefixes.setdefault(prefix[0], {})[prefix] = prefix_length(prefix)

    logger.debug(
        "Built autoload index: %d files, %d PSR-0 prefixes, %d PSR-4 prefixes",
        len(files),
        sum(len(prefixes) for prefixes in psr0.values()),
        len(psr4_paths),
    )
    return AutoloadIndex(
        content_hash=manifest.content_hash,
        files=files,
        psr0=psr0,
        psr4_paths=psr4_paths,
        psr4_prefixes=psr4_prefixes,
        psr0_fallback_dirs=psr0_fallback,
        psr4_fallback_dirs=psr4_fallback,
    )
