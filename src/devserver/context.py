"""Per-configuration resolution context.

One context is created when the server starts and shared by every request:
it owns the descriptor store, the transcode cache and the prebuilt import
map. Dropping the reference is the only teardown required.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from constants import Constants
from common.logging_utils import extra_context
from importmap.builder import ImportMap, ImportMapBuilder
from importmap.html import HtmlPatcher
from resolution.descriptor import Descriptor
from resolution.store import DescriptorStore, find_modules_root
from transcode.bundler import Bundler, create_bundler
from transcode.cache import TranscodeCache
from transcode.enumerate import create_enumerator
from .config import DevServerConfig

logger = logging.getLogger(__name__)


def is_production() -> bool:
    return any(os.environ.get(var) == "production" for var in Constants.ENV_MODE)


@dataclass
class ResolutionContext:
    """Everything a request needs to resolve and serve bare modules."""

    config: DevServerConfig
    modules_root: Path
    store: DescriptorStore
    cache: TranscodeCache
    import_map: Optional[ImportMap] = None
    exported: Dict[str, Descriptor] = field(default_factory=dict)
    patcher: Optional[HtmlPatcher] = None

    @property
    def base(self) -> str:
        return self.config.base

    def is_prebundled(self, name: str) -> bool:
        return self.import_map is not None and name in self.import_map.prebundled

    @classmethod
    async def create(
        cls,
        config: DevServerConfig,
        bundler: Optional[Bundler] = None,
        modules_root: Optional[Path] = None,
    ) -> "ResolutionContext":
        """Locate node_modules, load the requested packages and build the map.

        Raises:
            ModulesRootNotFoundError: if there is no node_modules directory.
            DescriptorLoadError: if a requested package cannot be loaded.
        """
        root = Path(modules_root) if modules_root else find_modules_root(config.search_root)
        project_dir = root.parent
        store = DescriptorStore(root)
        cache = TranscodeCache(
            root,
            bundler or create_bundler(config.bundler, cwd=project_dir, timeout=config.bundler_timeout),
            create_enumerator(config.export_enumeration, cwd=project_dir),
        )
        context = cls(config=config, modules_root=root, store=store, cache=cache)

        if config.modules:
            if is_production():
                logger.warning(
                    "bundle-free module mapping is not intended to be used in production environments."
                )
            builder = ImportMapBuilder(store)
            context.import_map = await builder.build(config.modules)
            context.exported = builder.exported

        context.patcher = HtmlPatcher(context.import_map, config.patch_options())
        logger.info(
            "Resolution context ready: %d exported package(s) under %s",
            len(context.exported),
            root,
            extra=extra_context(event="context_ready", component="context", count=len(context.exported)),
        )
        return context
