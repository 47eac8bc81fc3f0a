"""Lock manifest model and parser."""

from .model import ArtifactDescriptor, AutoloadDirectives, LockManifest, Package
from .parser import LockFileError, load_lock_manifest, parse_lock_data

__all__ = [
    "ArtifactDescriptor",
    "AutoloadDirectives",
    "LockManifest",
    "Package",
    "LockFileError",
    "load_lock_manifest",
    "parse_lock_data",
]
