"""Autoload index and classmap generation for installed PHP packages."""

from .analyzer import AnalyzerUnavailable, SourceParseFailure, TreeSitterPhpAnalyzer
from .classmap import ClassIndex, ClassmapBuilder, build_package_classmap
from .index import AutoloadIndex, AutoloadRenderer, build_autoload_index
from .scanner import iter_source_files

__all__ = [
    "SourceParseFailure",
    "TreeSitterPhpAnalyzer",
    "ClassIndex",
    "ClassmapBuilder",
    "build_package_classmap",
    "AutoloadIndex",
    "AutoloadRenderer",
    "build_autoload_index",
    "iter_source_files",
]
