"""Tests for the content-addressed artifact cache."""

import threading

import pytest

from pkginstall.cache import ArtifactCache


class TestArtifactCache:
    """Tests for ArtifactCache."""

    def test_layout(self, tmp_path):
        """Blobs live under <root>/archives/<reference>.<ext>."""
        cache = ArtifactCache(tmp_path / "cache")
        assert cache.path_for("abc123") == tmp_path / "cache" / "archives" / "abc123.zip"
        assert cache.path_for("abc123", "tar") == tmp_path / "cache" / "archives" / "abc123.tar"

    def test_store_and_read(self, tmp_path):
        """Stored bytes are returned unchanged."""
        cache = ArtifactCache(tmp_path / "cache")
        assert not cache.has("abc123")

        path = cache.store("abc123", b"archive-bytes")

        assert path.read_bytes() == b"archive-bytes"
        assert cache.has("abc123")
        assert cache.read("abc123") == b"archive-bytes"

    def test_read_missing(self, tmp_path):
        """Reading an absent entry raises FileNotFoundError."""
        cache = ArtifactCache(tmp_path / "cache")
        with pytest.raises(FileNotFoundError):
            cache.read("nope")

    def test_store_leaves_no_temp_files(self, tmp_path):
        """The temp file is renamed onto the final name."""
        cache = ArtifactCache(tmp_path / "cache")
        cache.store("abc123", b"one")
        cache.store("abc123", b"one")
        assert sorted(p.name for p in cache.archives_directory.iterdir()) == ["abc123.zip"]

    def test_concurrent_writers_same_key(self, tmp_path):
        """Racing writers of the same reference end with one complete blob."""
        cache = ArtifactCache(tmp_path / "cache")
        payload = b"x" * 256 * 1024
        threads = [threading.Thread(target=cache.store, args=("same", payload)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cache.read("same") == payload
        assert [p.name for p in cache.archives_directory.iterdir()] == ["same.zip"]

    def test_clear(self, tmp_path):
        """clear() removes the whole cache root."""
        root = tmp_path / "cache"
        cache = ArtifactCache(root)
        cache.store("abc123", b"data")

        assert cache.clear() is True
        assert not root.exists()
        assert cache.clear() is False
