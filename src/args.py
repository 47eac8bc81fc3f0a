"""Argument parsing functionality for composer-py."""

import argparse


def _add_common_options(parser):
    parser.add_argument("-w", "--working-directory",
                        dest="WORKING_DIRECTORY",
                        help="Project directory containing composer.lock (default: current directory)",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--cache-directory",
                        dest="CACHE_DIRECTORY",
                        help="Archive cache directory (default: ~/.cache/composer-py)",
                        action="store",
                        type=str)
    parser.add_argument("--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level (default: $COMPOSERPY_LOG_LEVEL or INFO)",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)


def build_parser():
    """Build the argument parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="composer-py",
        description="Install PHP packages from composer.lock and build the autoload indexes",
        add_help=True,
    )
    subparsers = parser.add_subparsers(dest="action", metavar="COMMAND")

    install = subparsers.add_parser("install", help="Install all packages from composer.lock")
    _add_common_options(install)
    install.add_argument("--concurrency",
                         dest="MAX_CONCURRENCY",
                         help="Maximum number of packages installed at the same time",
                         action="store",
                         type=int)
    install.add_argument("--fail-fast",
                         dest="FAIL_FAST",
                         help="Cancel outstanding installs after the first failure",
                         action="store_true")
    install.add_argument("--dev",
                         dest="DEV",
                         help="Also install packages-dev",
                         action="store_true")
    install.add_argument("--dump-index",
                         dest="DUMP_INDEX",
                         help="Write the built autoload indexes to this JSON file",
                         action="store",
                         type=str)

    clear_cache = subparsers.add_parser("clear-cache", help="Delete the archive cache")
    _add_common_options(clear_cache)

    classmap = subparsers.add_parser("classmap", help="Build a classmap for a directory or file")
    _add_common_options(classmap)
    classmap.add_argument("PATH",
                          help="Directory or file to scan, relative to the working directory",
                          type=str)
    classmap.add_argument("-o", "--output",
                          dest="OUTPUT",
                          help="Write the classmap to this JSON file instead of stdout",
                          action="store",
                          type=str)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
