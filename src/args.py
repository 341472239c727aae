"""Argument parsing functionality for bundlefree."""

import argparse
from constants import Bundlers, Constants, ExportEnumeration


def _livereload_value(value):
    """Accept a port number for --livereload."""
    try:
        port = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid port: {value}") from e
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError(f"port out of range: {value}")
    return port


def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bundlefree",
        description=(
            "bundlefree - serve ES module apps with npm dependencies, no build step"
        ),
        add_help=True,
    )

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON). "
                             f"Defaults to the first of {', '.join(Constants.CONFIG_FILES)} "
                             "found in the current directory.",
                        action="store",
                        type=str)
    parser.add_argument("--host",
                        dest="HOST",
                        help=f"Address to bind (default: {Constants.DEFAULT_HOST})",
                        action="store",
                        type=str)
    parser.add_argument("-p", "--port",
                        dest="PORT",
                        help=f"Port to listen on (default: {Constants.DEFAULT_PORT})",
                        action="store",
                        type=int)
    parser.add_argument("--allow-external",
                        dest="ALLOW_EXTERNAL",
                        help="Allow binding to non-loopback addresses.",
                        action="store_true")
    parser.add_argument("-b", "--base",
                        dest="BASE",
                        help="URL path the app is mounted at (default: /)",
                        action="store",
                        type=str)
    parser.add_argument("-d", "--path",
                        dest="APP_PATH",
                        help="Directory holding the client app (default: current directory)",
                        action="store",
                        type=str)
    parser.add_argument("--root",
                        dest="ROOT",
                        help="Directory to start searching for node_modules (default: app directory)",
                        action="store",
                        type=str)
    parser.add_argument("-m", "--module",
                        dest="MODULES",
                        help="Dependency to expose by bare name (repeatable)",
                        action="append",
                        type=str,
                        default=[])
    parser.add_argument("--spa",
                        dest="SPA",
                        help="Serve the default document for unknown paths (single page apps).",
                        action="store_true")
    parser.add_argument("--default",
                        dest="DEFAULT_DOCUMENT",
                        help=f"Default document for --spa (default: {Constants.DEFAULT_DOCUMENT})",
                        action="store",
                        type=str)
    parser.add_argument("--overlay",
                        dest="OVERLAY",
                        help="Inject an overlay script that shows uncaught errors in the page.",
                        action="store_true")
    parser.add_argument("--livereload",
                        dest="LIVERELOAD",
                        help=f"Inject a livereload client (optional port, default {Constants.LIVERELOAD_PORT})",
                        nargs="?",
                        const=True,
                        type=_livereload_value)
    parser.add_argument("--bundler",
                        dest="BUNDLER",
                        help="Bundler used to transcode CommonJS packages",
                        action="store",
                        type=str.lower,
                        choices=[b.value for b in Bundlers])
    parser.add_argument("--bundler-timeout",
                        dest="BUNDLER_TIMEOUT",
                        help=f"Seconds a single bundler run may take (default: {Constants.BUNDLER_TIMEOUT})",
                        action="store",
                        type=float)
    parser.add_argument("--export-enumeration",
                        dest="EXPORT_ENUMERATION",
                        help="How CommonJS exports are discovered: static scan or loading in node",
                        action="store",
                        type=str.lower,
                        choices=[e.value for e in ExportEnumeration])
    parser.add_argument("--prebundle-export-shim",
                        dest="PREBUNDLE_EXPORT_SHIM",
                        help="Also use an export shim as the entry of whole-package prebundles.",
                        action="store_true")
    parser.add_argument("--clear-cache",
                        dest="CLEAR_CACHE",
                        help="Delete the transcode cache and exit.",
                        action="store_true")
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
