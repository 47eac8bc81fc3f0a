"""Parser mapping a composer.lock JSON document onto the lock model.

Only the fields the installer and the autoload builders need are read;
unknown fields are ignored.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from .model import ArtifactDescriptor, AutoloadDirectives, LockManifest, Package

logger = logging.getLogger(__name__)


class LockFileError(Exception):
    """composer.lock is missing, unreadable or structurally invalid."""


def load_lock_manifest(lockfile_path: str, include_dev: bool = False) -> LockManifest:
    """Read and parse a composer.lock file.

    Args:
        lockfile_path: Path to the composer.lock file.
        include_dev: Also load the ``packages-dev`` section.

    Returns:
        LockManifest: The parsed manifest.

    Raises:
        LockFileError: If the file cannot be read or parsed.
    """
    try:
        with open(lockfile_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise LockFileError(f"lock file not found: {lockfile_path}") from e
    except OSError as e:
        raise LockFileError(f"failed to read lock file {lockfile_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise LockFileError(f"failed to parse lock file {lockfile_path}: {e}") from e

    return parse_lock_data(data, include_dev=include_dev)


def parse_lock_data(data: Any, include_dev: bool = False) -> LockManifest:
    """Build a LockManifest from an already-decoded JSON document."""
    if not isinstance(data, dict):
        raise LockFileError("lock file root must be a JSON object")

    content_hash = data.get("content-hash")
    if not isinstance(content_hash, str):
        raise LockFileError("lock file is missing 'content-hash'")

    sections = ["packages", "packages-dev"] if include_dev else ["packages"]
    packages: List[Package] = []
    for section in sections:
        entries = data.get(section) or []
        if not isinstance(entries, list):
            raise LockFileError(f"'{section}' must be a list")
        for entry in entries:
            packages.append(_parse_package(entry))

    logger.debug("Parsed %d packages from lock file", len(packages))
    return LockManifest(content_hash=content_hash, packages=tuple(packages))


def _parse_package(entry: Any) -> Package:
    if not isinstance(entry, dict):
        raise LockFileError("package entries must be JSON objects")
    try:
        name = entry["name"]
        version = entry["version"]
    except KeyError as e:
        raise LockFileError(f"package entry is missing {e}") from e

    return Package(
        name=name,
        version=version,
        package_type=entry.get("type"),
        source=_parse_descriptor(name, entry.get("source")),
        dist=_parse_descriptor(name, entry.get("dist")),
        autoload=_parse_autoload(name, entry.get("autoload")),
    )


def _parse_descriptor(package: str, raw: Any) -> Optional[ArtifactDescriptor]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise LockFileError(f"{package}: source/dist must be a JSON object")
    try:
        return ArtifactDescriptor(kind=raw["type"], url=raw["url"], reference=raw["reference"])
    except KeyError as e:
        raise LockFileError(f"{package}: source/dist is missing {e}") from e


def _parse_autoload(package: str, raw: Any) -> Optional[AutoloadDirectives]:
    # Composer writes an empty autoload section as [] rather than {}
    if raw is None or raw == []:
        return None
    if not isinstance(raw, dict):
        raise LockFileError(f"{package}: autoload must be a JSON object")

    return AutoloadDirectives(
        files=tuple(raw.get("files") or ()),
        psr0=_mapping(package, raw.get("psr-0")),
        psr4=_mapping(package, raw.get("psr-4")),
        classmap=tuple(raw.get("classmap") or ()),
        exclude_from_classmap=tuple(raw.get("exclude-from-classmap") or ()),
    )


def _mapping(package: str, raw: Any) -> Dict[str, Any]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise LockFileError(f"{package}: PSR autoload sections must be JSON objects")
    return dict(raw)
