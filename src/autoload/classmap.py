"""Build class name to file indexes from PHP sources on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from lock.model import LockManifest

from .analyzer import (
    ClassDeclaration,
    SourceAnalyzer,
    SourceParseFailure,
    Statement,
    StatementVisitor,
    TreeSitterPhpAnalyzer,
)
from .scanner import iter_source_files

logger = logging.getLogger(__name__)

# Fully-qualified class name -> path of the declaring file
ClassIndex = Dict[str, str]


class _ClassCollector(StatementVisitor):
    def __init__(self) -> None:
        self.classes: List[str] = []

    def visit_class(self, statement: ClassDeclaration, prefix: str) -> None:
        self.classes.append(f"{prefix}{statement.name}")


def classes_in(statements: Iterable[Statement], prefix: str = "") -> List[str]:
    """Return fully-qualified names of the classes declared in ``statements``."""
    collector = _ClassCollector()
    collector.visit(statements, prefix)
    return collector.classes


class ClassmapBuilder:
    """Scan a package tree and map every declared class to its file."""

    def __init__(self, analyzer: Optional[SourceAnalyzer] = None):
        self._analyzer = analyzer

    @property
    def analyzer(self) -> SourceAnalyzer:
        if self._analyzer is None:
            self._analyzer = TreeSitterPhpAnalyzer()
        return self._analyzer

    def build(
        self,
        package_root: Union[str, Path],
        scan_path: str = "",
        exclude_directories: Sequence[str] = (),
    ) -> ClassIndex:
        """Index the classes found under ``package_root / scan_path``.

        Values are paths relative to ``package_root`` with ``/`` separators.
        A name declared twice keeps the last file seen. Files that fail to
        analyze are logged and skipped.
        """
        package_root = Path(package_root)
        index: ClassIndex = {}
        for path in iter_source_files(package_root, scan_path, exclude_directories):
            relative = path.relative_to(package_root).as_posix()
            try:
                names = self.classes_in_file(path)
            except SourceParseFailure as e:
                logger.warning("Skipping %s: %s", relative, e.reason)
                continue
            for name in names:
                index[name] = relative
        return index

    def classes_in_file(self, path: Union[str, Path]) -> List[str]:
        """Analyze one file.

        Raises:
            SourceParseFailure: if the file cannot be read or parsed.
        """
        try:
            source = Path(path).read_bytes()
        except OSError as e:
            raise SourceParseFailure(str(path), f"unreadable: {e}") from e
        return classes_in(self.analyzer.parse(source, str(path)))


def build_package_classmap(
    manifest: LockManifest,
    vendor_root: Union[str, Path],
    builder: Optional[ClassmapBuilder] = None,
) -> ClassIndex:
    """Index the ``classmap`` autoload entries of every package in the manifest.

    Values are ``<package-name>/<path relative to the package>``. Packages are
    processed in manifest order; a later declaration of a name wins.
    """
    builder = builder or ClassmapBuilder()
    vendor_root = Path(vendor_root)
    index: ClassIndex = {}
    for package in manifest.packages:
        autoload = package.autoload
        if autoload is None or not autoload.classmap:
            continue
        package_root = vendor_root / package.name
        for scan_path in autoload.classmap:
            fragment = builder.build(package_root, scan_path, autoload.exclude_from_classmap)
            for name, relative in fragment.items():
                index[name] = f"{package.name}/{relative}"
        logger.debug("Built classmap for %s", package.name)
    return index
