"""Content-addressed cache of transcoded ES modules.

Each entry is one ES module produced by the external bundler, stored as
``<sha256>.js`` where the hash covers the package name, version and the
resolved source file. The directory is append-only: an entry is created at
most once and never modified, so an existing file is always returned as-is.
Version upgrades produce new keys; stale entries only go away when the cache
directory is deleted.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from constants import Constants
from common.errors import TranscodeError
from common.logging_utils import Timer, extra_context
from resolution.descriptor import Descriptor
from resolution.exports import ROOT, resolve_export, strip_relative
from .bundler import Bundler
from .enumerate import StaticExportEnumerator, build_export_shim

logger = logging.getLogger(__name__)

PREBUNDLE_SUFFIX = "#prebundle"


def cache_key(name: str, version: str, source_path: str) -> str:
    """Stable content key for a (package, version, source file) triple."""
    return hashlib.sha256(f"{name}/{version}/{source_path}".encode("utf-8")).hexdigest()


def default_cache_dir(modules_root: Path) -> Path:
    """Cache directory for the node_modules tree at ``modules_root``."""
    return Path(modules_root) / Constants.VENDOR_NAMESPACE / Constants.CACHE_SUBDIR


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class TranscodeCache:
    """On-demand CommonJS to ES module transcoding with a durable cache.

    Requests for the same key are serialized by a per-key asyncio lock, so
    concurrent first requests run the bundler once and later ones reuse the
    file it wrote.
    """

    def __init__(
        self,
        modules_root: Path,
        bundler: Bundler,
        enumerator: Any = None,
        cache_dir: Optional[Path] = None,
    ):
        """Initialize the cache.

        Args:
            modules_root: node_modules directory packages are resolved in.
            bundler: Collaborator producing ES modules.
            enumerator: Export enumerator for shim generation.
            cache_dir: Override for the cache directory location.
        """
        self.modules_root = Path(modules_root)
        self.cache_dir = Path(cache_dir) if cache_dir else default_cache_dir(self.modules_root)
        self._bundler = bundler
        self._enumerator = enumerator or StaticExportEnumerator()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}
        self._hits = 0
        self._created = 0
        self._failures = 0

    @property
    def cache_url_prefix(self) -> str:
        """URL of the cache directory relative to the mount base."""
        try:
            relative = self.cache_dir.relative_to(self.modules_root.parent)
        except ValueError:
            relative = Path(Constants.NODE_MODULES_DIR) / Constants.VENDOR_NAMESPACE / Constants.CACHE_SUBDIR
        return relative.as_posix()

    def cache_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.js"

    def cache_url(self, key: str) -> str:
        return f"{self.cache_url_prefix}/{key}.js"

    def path_for_url(self, url: str) -> Optional[Path]:
        """Map a URL produced by this cache back to its file, if it is one."""
        prefix = self.cache_url_prefix + "/"
        if not url.startswith(prefix):
            return None
        file_name = url[len(prefix):]
        if "/" in file_name or not file_name.endswith(".js"):
            return None
        return self.cache_dir / file_name

    async def get_or_create(
        self,
        descriptor: Descriptor,
        sub_path: Optional[str],
        needs_export_enumeration: bool = True,
    ) -> Optional[str]:
        """Return the cache URL of ``sub_path`` transcoded to ES, or None.

        The legacy source is resolved with the ``require`` condition. None
        means nothing can be served for this path; failures are logged, never
        raised.
        """
        source = resolve_export(descriptor, sub_path, [Constants.CONDITION_REQUIRE])
        if not source:
            logger.debug("No require entry for %s %s", descriptor.name, sub_path or ROOT)
            return None
        return await self._get_or_build(descriptor, source, source, needs_export_enumeration)

    async def prebundle(self, descriptor: Descriptor, use_export_shim: bool = False) -> Optional[str]:
        """Return the cache URL of a whole-package bundle, or None.

        The package's ES root is bundled together with everything it imports,
        so legacy dependencies are inlined instead of being mapped.
        """
        source = resolve_export(descriptor, ROOT, [Constants.CONDITION_IMPORT])
        if not source:
            return None
        return await self._get_or_build(
            descriptor, source, source + PREBUNDLE_SUFFIX, use_export_shim
        )

    async def _get_or_build(
        self,
        descriptor: Descriptor,
        source: str,
        key_source: str,
        use_export_shim: bool,
    ) -> Optional[str]:
        key = cache_key(descriptor.name, descriptor.version, key_source)
        path = self.cache_path(key)

        if await asyncio.to_thread(path.exists):
            self._hits += 1
            return self.cache_url(key)

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                # Another request may have built it while we waited
                if await asyncio.to_thread(path.exists):
                    self._hits += 1
                    return self.cache_url(key)
                await self._build(descriptor, source, key, path, use_export_shim)
        except (TranscodeError, OSError) as e:
            self._failures += 1
            logger.error(
                "Failed to transcode %s/%s: %s",
                descriptor.name,
                strip_relative(source),
                e,
                extra=extra_context(
                    event="transcode_failed",
                    component="cache",
                    package=descriptor.name,
                    version=descriptor.version,
                    outcome="error",
                ),
            )
            return None
        finally:
            # The lock stays while anyone still holds or awaits it
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                self._locks.pop(key, None)

        self._created += 1
        return self.cache_url(key)

    async def _build(
        self,
        descriptor: Descriptor,
        source: str,
        key: str,
        path: Path,
        use_export_shim: bool,
    ) -> None:
        await asyncio.to_thread(self.cache_dir.mkdir, parents=True, exist_ok=True)
        package_dir = descriptor.directory or (self.modules_root / descriptor.name)
        source_file = package_dir / strip_relative(source)

        # Bundle into a temporary name so a failed run never leaves a partial
        # file that later requests would treat as cached
        partial = path.with_name(f"{path.name}.{uuid.uuid4().hex}.partial")
        with Timer() as timer:
            try:
                if use_export_shim:
                    async with self._export_shim(source_file, key) as entry:
                        await self._bundler.bundle(entry, partial)
                else:
                    await self._bundler.bundle(source_file, partial)
                await asyncio.to_thread(os.replace, partial, path)
            finally:
                await asyncio.to_thread(_remove_quietly, partial)

        logger.info(
            "Transcoded %s/%s in %sms",
            descriptor.name,
            strip_relative(source),
            timer.duration_ms(),
            extra=extra_context(
                event="transcode_created",
                component="cache",
                package=descriptor.name,
                version=descriptor.version,
                key=key,
                duration_ms=timer.duration_ms(),
            ),
        )

    @asynccontextmanager
    async def _export_shim(self, source_file: Path, key: str) -> AsyncIterator[Path]:
        """Write a re-export shim for ``source_file`` and remove it afterwards.

        Removal is best effort: a failure to delete the shim is logged and
        does not replace the outcome of the bundling it wrapped.
        """
        shim = self.cache_dir / f"exports-{key}.js"
        try:
            names = await self._enumerator.enumerate(source_file)
            await asyncio.to_thread(
                shim.write_text, build_export_shim(names, source_file), encoding="utf-8"
            )
            yield shim
        finally:
            try:
                await asyncio.to_thread(_remove_quietly, shim)
            except OSError as e:
                logger.debug("Could not remove export shim %s: %s", shim, e)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "cache_dir": str(self.cache_dir),
            "hits": self._hits,
            "created": self._created,
            "failures": self._failures,
            "in_flight": len(self._locks),
        }

