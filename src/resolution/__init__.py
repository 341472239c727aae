"""Package descriptor loading and npm-style export resolution.

This package answers "which file serves this import?" for packages under a
node_modules tree, without touching the network or running any bundler.
"""

from .descriptor import (
    Descriptor,
    ModuleType,
    ExportsLiteral,
    ExportsNode,
    ExportsFallback,
    ExportsBlocked,
    parse_exports,
)
from .exports import resolve_export, normalize_sub_path, pattern_to_regex
from .classifier import BundleStrategy, classify, is_bare_package, is_module_package
from .store import DescriptorStore, find_modules_root

__all__ = [
    "Descriptor",
    "ModuleType",
    "ExportsLiteral",
    "ExportsNode",
    "ExportsFallback",
    "ExportsBlocked",
    "parse_exports",
    "resolve_export",
    "normalize_sub_path",
    "pattern_to_regex",
    "BundleStrategy",
    "classify",
    "is_bare_package",
    "is_module_package",
    "DescriptorStore",
    "find_modules_root",
]
