"""CLI entry point for the bundlefree development server.

This module turns parsed command-line arguments into a server configuration,
sets up logging and runs the server until interrupted.
"""

from __future__ import annotations

import ipaddress
import logging
import shutil
import sys
from pathlib import Path
from typing import Any, Optional

from constants import ExitCodes
from common.errors import BundleFreeError
from common.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def _is_local_bind_host(host: str) -> bool:
    """Return True if host is a loopback/local bind target."""
    if not host:
        return False
    host_lower = host.strip().lower()
    if host_lower in ("localhost",):
        return True
    try:
        return ipaddress.ip_address(host_lower).is_loopback
    except ValueError:
        # Non-IP hostnames are treated as non-local unless explicitly allowed.
        return False


def _enforce_local_binding(host: str, allow_external: bool) -> None:
    """Enforce local-only binding unless explicitly allowed."""
    if _is_local_bind_host(host):
        return
    if not allow_external:
        sys.stderr.write(
            "ERROR: Non-local bindings require --allow-external.\n"
        )
        sys.exit(ExitCodes.CONFIG_ERROR.value)
    logger.warning(
        "Binding dev server to non-local address (%s). It serves your source tree unauthenticated.",
        host,
    )


def _setup_logging(args: Any) -> None:
    """Configure logging based on CLI arguments.

    Args:
        args: Parsed CLI arguments.
    """
    configure_logging(getattr(args, "LOG_LEVEL", None))

    # Add file handler if --logfile specified
    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
        file_handler.setFormatter(formatter)
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def _load_config(args: Any):
    """Build the server configuration from a config file and CLI arguments.

    Exits with CONFIG_ERROR when the configuration is unusable.
    """
    from devserver.config import (  # pylint: disable=import-outside-toplevel
        ConfigError,
        DevServerConfig,
        find_config_file,
        load_config_file,
    )

    config_path: Optional[Path] = None
    if getattr(args, "CONFIG", None):
        config_path = Path(args.CONFIG)
    else:
        config_path = find_config_file(Path.cwd())

    try:
        file_config = load_config_file(config_path) if config_path else None
        return DevServerConfig.from_args(args, file_config)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(ExitCodes.CONFIG_ERROR.value)


def _clear_cache(config) -> None:
    """Delete the transcode cache for the configured project."""
    from resolution.store import find_modules_root  # pylint: disable=import-outside-toplevel
    from transcode.cache import default_cache_dir  # pylint: disable=import-outside-toplevel

    try:
        modules_root = find_modules_root(config.search_root)
    except BundleFreeError as e:
        logger.error("%s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    cache_dir = default_cache_dir(modules_root)
    if cache_dir.exists():
        shutil.rmtree(cache_dir)
        logger.info("Removed cache directory: %s", cache_dir)
    else:
        logger.info("No cache directory at: %s", cache_dir)


def run_dev_server(args: Any) -> None:
    """Entry point for the serve command.

    Args:
        args: Parsed CLI arguments namespace.
    """
    _setup_logging(args)
    config = _load_config(args)

    if getattr(args, "CLEAR_CACHE", False):
        _clear_cache(config)
        return

    _enforce_local_binding(config.host, config.allow_external)

    # Lazy import to avoid loading aiohttp for --clear-cache and --help
    try:
        from devserver.server import run_server_sync  # pylint: disable=import-outside-toplevel
    except ImportError as e:
        sys.stderr.write(
            f"Dev server not available: {e}\n"
            "Make sure 'aiohttp' is installed: pip install aiohttp\n"
        )
        sys.exit(ExitCodes.FILE_ERROR.value)

    modules = ", ".join(m.name for m in config.modules) or "(none)"
    print(
        f"\n"
        f"  bundlefree dev server\n"
        f"  =====================\n"
        f"  Listening: http://{config.host}:{config.port}{config.base}\n"
        f"  App directory: {config.app_dir}\n"
        f"  Modules: {modules}\n"
        f"  Bundler: {config.bundler}\n"
        f"\n"
        f"  Press Ctrl+C to stop\n"
    )

    try:
        run_server_sync(config)
    except BundleFreeError as e:
        # Broken dependency tree or missing node_modules: abort startup
        logger.error("Startup failed: %s", e)
        sys.exit(ExitCodes.DEPENDENCY_ERROR.value)
