"""Import map construction for the requested bare modules."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set, Union

from constants import Constants
from common.logging_utils import extra_context
from resolution.classifier import BundleStrategy, classify
from resolution.descriptor import Descriptor
from resolution.store import DescriptorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleRequest:
    """A dependency the application imports by bare name.

    ``url`` overrides resolution: the name is mapped straight to it.
    """

    name: str
    url: Optional[str] = None

    @classmethod
    def parse(cls, value: Union[str, Dict[str, Any], "ModuleRequest"]) -> "ModuleRequest":
        """Accept ``"name"`` or ``{"module": name, "url": ...}``.

        Raises:
            ValueError: if no module name is given.
        """
        if isinstance(value, ModuleRequest):
            return value
        if isinstance(value, str):
            name, url = value, None
        elif isinstance(value, dict):
            name = value.get("module") or value.get("name")
            url = value.get("url")
        else:
            raise ValueError(f"Invalid module entry: {value!r}")
        if not name or not isinstance(name, str):
            raise ValueError(f"Module entry without a name: {value!r}")
        return cls(name=name.strip(), url=url)


def module_url(name: str, trailing_slash: bool = False) -> str:
    """URL template for a bare module in the resolved-modules namespace."""
    url = f"{Constants.BASE_PLACEHOLDER}{Constants.MODULES_NAMESPACE}/{name}"
    return url + "/" if trailing_slash else url


@dataclass
class ImportMap:
    """Bare specifier to URL mapping with an unresolved base placeholder."""

    imports: Dict[str, str] = field(default_factory=dict)
    prebundled: Set[str] = field(default_factory=set)

    def resolve(self, base: str) -> Dict[str, Dict[str, str]]:
        """Return the browser import map for the mount path ``base``."""
        return {
            "imports": {
                name: url.replace(Constants.BASE_PLACEHOLDER, base)
                for name, url in self.imports.items()
            }
        }

    def __contains__(self, name: str) -> bool:
        return name in self.imports

    def __len__(self) -> int:
        return len(self.imports)


class ImportMapBuilder:
    """Walk requested modules and their dependencies into an ImportMap."""

    def __init__(self, store: DescriptorStore):
        self._store = store
        self.exported: Dict[str, Descriptor] = {}

    async def build(self, requests: Iterable[Union[str, Dict[str, Any], ModuleRequest]]) -> ImportMap:
        """Build the import map for ``requests``.

        Raises:
            DescriptorLoadError: if a requested package or one of its
                dependencies cannot be loaded.
        """
        import_map = ImportMap()
        overrides: Dict[str, str] = {}

        for raw in requests:
            request = ModuleRequest.parse(raw)
            if request.url:
                overrides[request.name] = request.url
                continue

            descriptor = await self._store.get(request.name)
            closure = await self._store.closure(request.name)
            strategy = classify(descriptor, closure)

            if strategy is BundleStrategy.NEEDS_PREBUNDLE:
                # Its legacy dependencies are inlined by the prebundle, so
                # they must not appear in the map
                self.exported.setdefault(descriptor.name, descriptor)
                import_map.prebundled.add(descriptor.name)
                logger.debug(
                    "Prebundling %s",
                    descriptor.name,
                    extra=extra_context(event="importmap_prebundle", component="importmap", package=descriptor.name),
                )
                continue

            self.exported.setdefault(descriptor.name, descriptor)
            for dep in closure:
                self.exported.setdefault(dep.name, dep)

        for name in self.exported:
            import_map.imports[name] = module_url(name)
            # A prebundle is one file, so it has no sub-paths to map
            if name not in import_map.prebundled:
                import_map.imports[f"{name}/"] = module_url(name, trailing_slash=True)

        # Explicit URLs win over anything resolved
        import_map.imports.update(overrides)

        logger.info(
            "Import map covers %d package(s)",
            len(self.exported),
            extra=extra_context(event="importmap_built", component="importmap", count=len(self.exported)),
        )
        return import_map
