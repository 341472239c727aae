"""Exception hierarchy for bundlefree.

Resolution misses are not errors: resolvers return ``None`` and callers try
the next strategy. The exceptions below cover broken dependency trees, which
abort configuration, and transcoding failures, which the transcode cache
logs and degrades to "nothing to serve".
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class BundleFreeError(Exception):
    """Base class for all bundlefree errors."""


class ModulesRootNotFoundError(BundleFreeError):
    """Raised when no node_modules directory exists above the start path."""

    def __init__(self, start: Path):
        self.start = start
        super().__init__(f"Failed to locate node_modules above {start}")


class DescriptorLoadError(BundleFreeError):
    """Raised when a package.json is missing or cannot be parsed."""

    def __init__(self, name: str, reason: str, path: Optional[Path] = None):
        self.name = name
        self.reason = reason
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"Failed to load package '{name}'{where}: {reason}")


class TranscodeError(BundleFreeError):
    """Base class for failures while producing an ES module."""


class BundlerError(TranscodeError):
    """Raised when the external bundler fails or times out."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        self.returncode = returncode
        self.output = output
        super().__init__(message)


class ExportEnumerationError(TranscodeError):
    """Raised when the exports of a CommonJS module cannot be discovered."""
