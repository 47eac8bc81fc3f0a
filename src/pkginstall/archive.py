"""Zip extraction with removal of the archive's top-level wrapper directory."""

from __future__ import annotations

import io
import logging
import os
import stat
import zipfile
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """Archive is corrupt, unreadable or unsafe to extract."""


def _wrapper_prefix(names: List[str]) -> Optional[str]:
    """Return the single top-level directory every entry lives under, if any."""
    tops = set()
    for name in names:
        parts = PurePosixPath(name).parts
        if not parts:
            continue
        # A file sitting at the top level means there is no wrapper
        if len(parts) == 1 and not name.endswith("/"):
            return None
        tops.add(parts[0])
    if len(tops) != 1:
        return None
    return tops.pop()


def _target_for(destination: Path, name: str, strip: Optional[str]) -> Optional[Path]:
    parts = PurePosixPath(name.replace("\\", "/")).parts
    if strip is not None:
        parts = parts[1:]
    if not parts:
        return None
    if any(part in ("..", "") for part in parts) or PurePosixPath(name).is_absolute():
        raise ArchiveError(f"unsafe path in archive: {name}")
    return destination.joinpath(*parts)


def extract_zip(data: bytes, destination: Union[str, Path], strip_toplevel: bool = True) -> int:
    """Extract zip bytes into ``destination``.

    Args:
        data: Archive contents.
        destination: Existing target directory.
        strip_toplevel: Drop the single wrapper directory when the archive has one.

    Returns:
        int: Number of files written.

    Raises:
        ArchiveError: If the archive is corrupt or contains unsafe paths.
    """
    destination = Path(destination)
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise ArchiveError(f"invalid zip archive: {e}") from e

    written = 0
    with archive:
        infos = archive.infolist()
        strip = _wrapper_prefix([info.filename for info in infos]) if strip_toplevel else None

        for info in infos:
            target = _target_for(destination, info.filename, strip)
            if target is None:
                continue
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                with archive.open(info) as src, open(target, "wb") as dst:
                    while True:
                        chunk = src.read(64 * 1024)
                        if not chunk:
                            break
                        dst.write(chunk)
            except (zipfile.BadZipFile, RuntimeError, EOFError) as e:
                raise ArchiveError(f"failed to extract {info.filename}: {e}") from e

            mode = (info.external_attr >> 16) & 0o777
            if mode and not stat.S_ISLNK(info.external_attr >> 16):
                os.chmod(target, mode)
            written += 1

    logger.debug("Extracted %d files into %s", written, destination)
    return written
