"""Content-addressed on-disk cache of package archives."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Dict, Union

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)


class ArtifactCache:
    """Archive blobs stored as ``<root>/archives/<reference>.<extension>``.

    The reference of a descriptor is derived from the artifact contents, so a
    present entry is always the right bytes. Presence is the only contract;
    no metadata or expiry is kept.
    """

    def __init__(self, root: Union[str, Path]):
        """Initialize the cache.

        Args:
            root: Cache root directory; created lazily on first write.
        """
        self._root = Path(root)
        self._archives = self._root / Constants.CACHE_ARCHIVES_DIR
        self._key_locks: Dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def archives_directory(self) -> Path:
        return self._archives

    def path_for(self, reference: str, extension: str = "zip") -> Path:
        """Location of the blob for ``reference``."""
        return self._archives / f"{reference}.{extension}"

    def has(self, reference: str, extension: str = "zip") -> bool:
        return self.path_for(reference, extension).is_file()

    def read(self, reference: str, extension: str = "zip") -> bytes:
        """Read a cached blob.

        Raises:
            FileNotFoundError: if the entry is absent.
        """
        path = self.path_for(reference, extension)
        data = path.read_bytes()
        if is_debug_enabled(logger):
            logger.debug(
                "Artifact cache hit",
                extra=extra_context(
                    event="cache_hit",
                    component="artifact_cache",
                    reference=reference,
                    size=len(data),
                ),
            )
        return data

    def store(self, reference: str, data: bytes, extension: str = "zip") -> Path:
        """Persist a blob atomically.

        The bytes go to a temporary file in the archives directory, which is
        then renamed onto the final name. Writers of the same key are
        serialized; rewriting an existing key with the same bytes is harmless.
        """
        final_path = self.path_for(reference, extension)
        with self._lock_for(final_path.name):
            self._archives.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{reference}.", suffix=".tmp", dir=self._archives
            )
            try:
                with os.fdopen(fd, "wb") as tmp:
                    tmp.write(data)
                os.replace(tmp_name, final_path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

        logger.debug("Stored %s in artifact cache (%d bytes)", final_path.name, len(data))
        return final_path

    def clear(self) -> bool:
        """Delete the whole cache root.

        Returns:
            bool: True if something was removed.
        """
        if not self._root.exists():
            return False
        shutil.rmtree(self._root)
        logger.info("Cleared cache directory %s", self._root)
        return True

    def _lock_for(self, key: str) -> threading.Lock:
        with self._key_locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock
