"""On-demand transcoding of CommonJS packages into cached ES modules."""

from .bundler import Bundler, RollupBundler, EsbuildBundler, create_bundler
from .enumerate import (
    StaticExportEnumerator,
    NodeExportEnumerator,
    build_export_shim,
    create_enumerator,
)
from .cache import TranscodeCache, cache_key

__all__ = [
    "Bundler",
    "RollupBundler",
    "EsbuildBundler",
    "create_bundler",
    "StaticExportEnumerator",
    "NodeExportEnumerator",
    "build_export_shim",
    "create_enumerator",
    "TranscodeCache",
    "cache_key",
]
