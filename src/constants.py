"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONFIG_ERROR = 2
    DEPENDENCY_ERROR = 3


class Bundlers(Enum):
    """External bundlers the transcode cache can drive.

    Args:
        Enum (string): Bundler names accepted on the command line.
    """

    ROLLUP = "rollup"
    ESBUILD = "esbuild"


class ExportEnumeration(Enum):
    """Strategies for discovering the exports of a CommonJS module."""

    STATIC = "static"
    NODE = "node"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PACKAGE_JSON_FILE = "package.json"
    NODE_MODULES_DIR = "node_modules"

    # URL namespace for resolved bare modules, relative to the mount base
    MODULES_NAMESPACE = "node_modules/bundle-free"
    # Cache lives inside node_modules so it is served by the static handler
    VENDOR_NAMESPACE = "@bundlefree"
    CACHE_SUBDIR = "bundle-free/cache"
    OVERLAY_SCRIPT = "~overlay.js"
    HEALTH_PATH = "_bundlefree/health"

    BASE_PLACEHOLDER = "{base}"
    CONDITION_IMPORT = "import"
    CONDITION_REQUIRE = "require"
    CONDITION_DEFAULT = "default"
    ES_EXTENSION = ".mjs"
    LEGACY_EXTENSION = ".cjs"
    DEFAULT_LEGACY_ENTRY = "index.js"

    DEFAULT_HOST = "127.0.0.1"
    DEFAULT_PORT = 3000
    DEFAULT_DOCUMENT = "index.html"
    LIVERELOAD_PORT = 35729
    BUNDLER_TIMEOUT = 120  # Seconds a single bundler run may take

    CONFIG_FILES = ["bundlefree.yml", "bundlefree.yaml", "bundlefree.json"]
    ENV_LOG_LEVEL = "BUNDLEFREE_LOG_LEVEL"
    ENV_MODE = ["BUNDLEFREE_ENV", "NODE_ENV"]
    LOG_FORMAT = "[%(levelname)s] %(message)s"
