"""Enumerate candidate PHP source files below an autoload root."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator, Sequence, Union

from constants import Constants

logger = logging.getLogger(__name__)


def iter_source_files(
    root: Union[str, Path],
    scan_path: str,
    exclude_directories: Sequence[str] = (),
) -> Iterator[Path]:
    """Yield source files under ``root / scan_path``.

    A file path is yielded as-is. A missing path yields nothing. Directories
    are walked in sorted order, pruning hidden entries and ``node_modules``
    trees, and only ``.php``/``.inc`` files are yielded.

    Args:
        root: Package root directory.
        scan_path: Path relative to ``root``.
        exclude_directories: Accepted but currently not applied to filtering.
    """
    target = Path(root) / scan_path

    if exclude_directories:
        logger.debug(
            "Exclude list %s for %s is not applied to classmap scanning",
            list(exclude_directories),
            target,
        )

    if target.is_file():
        yield target
        return
    if not target.is_dir():
        logger.debug("Scan path %s does not exist, skipping", target)
        return

    for dirpath, dirnames, filenames in os.walk(target):
        dirnames[:] = sorted(
            d for d in dirnames
            if not d.startswith(".") and d not in Constants.IGNORED_SCAN_DIRS
        )
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            if not filename.endswith(Constants.SOURCE_EXTENSIONS):
                continue
            yield Path(dirpath) / filename
