"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    INSTALL_ERROR = 3
    ANALYZER_ERROR = 4


class ArtifactKind(Enum):
    """Distribution archive kinds the installer can unpack.

    Args:
        Enum (string): Value of the ``type`` field of a source/dist entry.
    """

    ZIP = "zip"


class PackageTypes(Enum):
    """Package types with special install handling."""

    METAPACKAGE = "metapackage"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOCK_FILE = "composer.lock"
    VENDOR_DIR = "vendor"
    CACHE_APP_NAME = "composer-py"
    CACHE_ARCHIVES_DIR = "archives"
    SOURCE_EXTENSIONS = (".php", ".inc")
    IGNORED_SCAN_DIRS = ("node_modules",)
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    USER_AGENT = "composer-py"
    REQUEST_TIMEOUT = 300  # Timeout in seconds for archive downloads
    MAX_CONCURRENCY = 8
    FAIL_FAST = False

    # Environment overrides
    ENV_LOG_LEVEL = "COMPOSERPY_LOG_LEVEL"
    ENV_CACHE_DIR = "COMPOSERPY_CACHE_DIR"
    ENV_MAX_CONCURRENCY = "COMPOSERPY_MAX_CONCURRENCY"
