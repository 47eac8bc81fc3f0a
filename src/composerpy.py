"""composer-py - install PHP packages from composer.lock and build autoload indexes

    Returns:
        int: Exit code
"""
import json
import logging
import os
import sys
from typing import Any, Dict, Optional

from constants import ExitCodes
from common.logging_utils import configure_logging
from args import parse_args
from cli_config import ConfigError, InstallConfig
from lock.parser import LockFileError, load_lock_manifest
from pkginstall.cache import ArtifactCache
from pkginstall.errors import InstallError, NetworkFailure
from pkginstall.installer import InstallReport, install_manifest_sync
from autoload.analyzer import AnalyzerUnavailable
from autoload.classmap import ClassmapBuilder, build_package_classmap
from autoload.index import AutoloadIndex, AutoloadRenderer, build_autoload_index

logger = logging.getLogger(__name__)


def _setup_logging(args: Any) -> None:
    """Configure logging based on CLI arguments."""
    configure_logging(getattr(args, "LOG_LEVEL", None))

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
        file_handler.setFormatter(formatter)
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def export_json(data: Dict[str, Any], path: str) -> bool:
    """Write ``data`` as pretty-printed JSON.

    Returns:
        bool: True when the file was written.
    """
    try:
        with open(path, "w", encoding="utf-8") as file:
            json.dump(data, file, ensure_ascii=False, indent=4)
        logging.info("JSON file has been successfully exported at: %s", path)
        return True
    except OSError as e:
        logging.error("JSON file couldn't be written to disk: %s", e)
        return False


def _exit_code_for(error: InstallError) -> int:
    if isinstance(error, NetworkFailure):
        return ExitCodes.CONNECTION_ERROR.value
    return ExitCodes.INSTALL_ERROR.value


def run_install(
    config: InstallConfig,
    dump_index: Optional[str] = None,
    renderer: Optional[AutoloadRenderer] = None,
    downloader=None,
) -> int:
    """Install every package of the lock file and build the autoload indexes.

    Args:
        config: Resolved run configuration.
        dump_index: Optional path receiving the indexes as JSON.
        renderer: Optional writer of the PHP autoload files.
        downloader: Optional archive fetcher replacing the HTTP client.

    Returns:
        int: Exit code.
    """
    try:
        manifest = load_lock_manifest(str(config.lock_file), include_dev=config.include_dev)
    except LockFileError as e:
        logger.error("%s", e)
        return ExitCodes.FILE_ERROR.value

    cache = ArtifactCache(config.cache_directory)
    try:
        report: InstallReport = install_manifest_sync(
            manifest,
            cache,
            config.vendor_directory,
            max_concurrency=config.max_concurrency,
            fail_fast=config.fail_fast,
            downloader=downloader,
        )
    except InstallError as e:
        logger.error("Install failed for package %s (%s): %s", e.package, e.kind, e.message)
        return _exit_code_for(e)

    index: AutoloadIndex = build_autoload_index(manifest)
    classmap = build_package_classmap(manifest, config.vendor_directory, ClassmapBuilder())

    if renderer is not None:
        renderer.render(index, classmap, config.vendor_directory)

    if dump_index:
        payload = index.as_dict()
        payload["classmap"] = classmap
        if not export_json(payload, dump_index):
            return ExitCodes.FILE_ERROR.value

    logger.info(
        "Installed %d packages (%d from cache, %d skipped)",
        len(report.installed),
        len(report.from_cache),
        len(report.skipped),
    )
    return ExitCodes.SUCCESS.value


def run_clear_cache(config: InstallConfig) -> int:
    """Delete the archive cache."""
    cache = ArtifactCache(config.cache_directory)
    try:
        removed = cache.clear()
    except OSError as e:
        logger.error("Failed to clear cache %s: %s", config.cache_directory, e)
        return ExitCodes.FILE_ERROR.value
    if not removed:
        logger.info("Cache directory %s does not exist, nothing to clear", config.cache_directory)
    return ExitCodes.SUCCESS.value


def run_classmap(config: InstallConfig, path: str, output: Optional[str] = None) -> int:
    """Build a classmap for ``path`` relative to the working directory."""
    classmap = ClassmapBuilder().build(config.working_directory, path)
    if output:
        return ExitCodes.SUCCESS.value if export_json(classmap, output) else ExitCodes.FILE_ERROR.value
    sys.stdout.write(json.dumps(classmap, ensure_ascii=False, indent=4) + os.linesep)
    return ExitCodes.SUCCESS.value


def main(argv=None) -> int:
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)

    if not args.action:
        logger.error("No command passed. Use one of: install, clear-cache, classmap")
        return ExitCodes.FILE_ERROR.value

    try:
        config = InstallConfig.from_args(args)
    except ConfigError as e:
        logger.error("%s", e)
        return ExitCodes.FILE_ERROR.value

    if args.action == "clear-cache":
        logger.info("Clearing cache")
        return run_clear_cache(config)

    try:
        if args.action == "install":
            return run_install(config, dump_index=getattr(args, "DUMP_INDEX", None))
        return run_classmap(config, args.PATH, getattr(args, "OUTPUT", None))
    except AnalyzerUnavailable as e:
        logger.error("%s", e)
        return ExitCodes.ANALYZER_ERROR.value


if __name__ == "__main__":
    sys.exit(main())
