"""Package installer: archive cache, download, extraction.

Submodules are imported directly (``pkginstall.cache``, ``pkginstall.installer``)
so that the lock model can depend on ``pkginstall.errors`` without a cycle.
"""
