"""Decide how a package must be served to the browser."""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from constants import Constants
from .descriptor import Descriptor, ExportsFallback, ExportsNode, ExportsTarget
from .exports import ROOT, resolve_export


class BundleStrategy(Enum):
    """Serving strategy for a package."""

    # ES package exposing only its root; served as-is
    NATIVE_BARE = "native-bare"
    # ES package exposing sub-paths; each sub-path served as-is
    NATIVE = "native"
    # No ES entry; each requested sub-path is transcoded on demand
    NEEDS_SUBPATH_TRANSCODE = "subpath-transcode"
    # ES root-only package whose dependencies include legacy modules
    NEEDS_PREBUNDLE = "prebundle"


def _is_bare(node: ExportsTarget) -> bool:
    if isinstance(node, ExportsNode):
        for key, child in node.entries:
            if key.startswith(".") and key != ROOT:
                return False
            if not _is_bare(child):
                return False
        return True
    if isinstance(node, ExportsFallback):
        return all(_is_bare(option) for option in node.options)
    return True


def is_bare_package(descriptor: Descriptor) -> bool:
    """True when the exports map exposes nothing but the package root."""
    if descriptor.exports is None:
        return False
    return _is_bare(descriptor.exports)


def is_module_package(descriptor: Descriptor) -> bool:
    """True when the package root resolves under the ``import`` condition."""
    return resolve_export(descriptor, ROOT, [Constants.CONDITION_IMPORT]) is not None


def classify(descriptor: Descriptor, closure: Iterable[Descriptor] = ()) -> BundleStrategy:
    """Classify ``descriptor`` given its transitive dependencies."""
    if not is_module_package(descriptor):
        return BundleStrategy.NEEDS_SUBPATH_TRANSCODE
    if not is_bare_package(descriptor):
        return BundleStrategy.NATIVE
    if any(not is_module_package(dep) for dep in closure):
        return BundleStrategy.NEEDS_PREBUNDLE
    return BundleStrategy.NATIVE_BARE
