"""Descriptor store: loads and memoizes package.json files under node_modules.

A store is owned by one resolution context (one serving configuration) and
shared by every request it handles. Descriptors are immutable once loaded and
live as long as the store does.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from constants import Constants
from common.errors import DescriptorLoadError, ModulesRootNotFoundError
from common.logging_utils import extra_context, is_debug_enabled
from .descriptor import Descriptor

logger = logging.getLogger(__name__)


def find_modules_root(start: Optional[Path] = None) -> Path:
    """Walk up from ``start`` until a node_modules directory is found.

    Raises:
        ModulesRootNotFoundError: if none exists up to the filesystem root.
    """
    origin = Path(start or Path.cwd()).resolve()
    directory = origin
    while True:
        candidate = directory / Constants.NODE_MODULES_DIR
        if candidate.is_dir():
            return candidate
        if directory.parent == directory:
            raise ModulesRootNotFoundError(origin)
        directory = directory.parent


def read_descriptor(modules_root: Path, name: str) -> Descriptor:
    """Read and parse ``<modules_root>/<name>/package.json`` synchronously."""
    directory = modules_root / name
    manifest = directory / Constants.PACKAGE_JSON_FILE
    try:
        with open(manifest, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise DescriptorLoadError(name, "package.json not found", manifest) from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DescriptorLoadError(name, str(e), manifest) from e
    return Descriptor.from_dict(data, directory=directory, name=name)


class DescriptorStore:
    """Memoizing, concurrency-safe loader of package descriptors.

    Concurrent first requests for the same package share one read through a
    per-name asyncio lock.
    """

    def __init__(self, modules_root: Path):
        self.modules_root = Path(modules_root)
        self._descriptors: Dict[str, Descriptor] = {}
        self._closures: Dict[str, Tuple[Descriptor, ...]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def cached(self, name: str) -> Optional[Descriptor]:
        """Return an already loaded descriptor without touching the disk."""
        return self._descriptors.get(name)

    def add(self, descriptor: Descriptor) -> None:
        """Register a descriptor directly (used for pre-parsed manifests)."""
        self._descriptors.setdefault(descriptor.name, descriptor)

    async def get(self, name: str) -> Descriptor:
        """Load the descriptor for ``name``, reading package.json at most once.

        Raises:
            DescriptorLoadError: if package.json is missing or invalid.
        """
        descriptor = self._descriptors.get(name)
        if descriptor is not None:
            return descriptor

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            descriptor = self._descriptors.get(name)
            if descriptor is not None:
                return descriptor
            descriptor = await asyncio.to_thread(read_descriptor, self.modules_root, name)
            self._descriptors[name] = descriptor
            if is_debug_enabled(logger):
                logger.debug(
                    "Loaded descriptor %s@%s",
                    descriptor.name,
                    descriptor.version,
                    extra=extra_context(
                        event="descriptor_load",
                        component="store",
                        package=descriptor.name,
                        version=descriptor.version,
                    ),
                )
        self._locks.pop(name, None)
        return descriptor

    async def closure(self, name: str) -> Tuple[Descriptor, ...]:
        """Return the transitive dependencies of ``name``.

        Each declared dependency is followed by its own dependencies, depth
        first; duplicates are dropped by name (first occurrence wins) and the
        package itself is never included, even through a cycle.
        """
        cached = self._closures.get(name)
        if cached is not None:
            return cached

        root = await self.get(name)
        ordered: List[Descriptor] = []
        seen = {root.name}

        async def _walk(descriptor: Descriptor) -> None:
            for dep_name in descriptor.dependencies:
                if dep_name in seen:
                    continue
                seen.add(dep_name)
                dep = await self.get(dep_name)
                ordered.append(dep)
                await _walk(dep)

        await _walk(root)
        result = tuple(ordered)
        self._closures[name] = result
        return result
