"""Package descriptor model parsed from package.json.

The ``exports`` field is converted into a closed set of variants so the
resolver can dispatch on type instead of probing loosely typed JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from common.errors import DescriptorLoadError


class ModuleType(Enum):
    """Value of the package.json ``type`` field."""

    MODULE = "module"
    COMMONJS = "commonjs"
    UNSPECIFIED = "unspecified"

    @classmethod
    def from_field(cls, value: Any) -> "ModuleType":
        if value == "module":
            return cls.MODULE
        if value == "commonjs":
            return cls.COMMONJS
        return cls.UNSPECIFIED


@dataclass(frozen=True)
class ExportsLiteral:
    """A target path, possibly containing one ``*`` placeholder."""

    target: str


@dataclass(frozen=True)
class ExportsNode:
    """An ordered mapping of sub-path patterns, conditions and ``default``."""

    entries: Tuple[Tuple[str, "ExportsTarget"], ...]

    def get(self, key: str) -> Optional["ExportsTarget"]:
        for entry_key, target in self.entries:
            if entry_key == key:
                return target
        return None

    def keys(self) -> Tuple[str, ...]:
        return tuple(key for key, _ in self.entries)


@dataclass(frozen=True)
class ExportsFallback:
    """A list of alternative targets tried in order."""

    options: Tuple["ExportsTarget", ...]


@dataclass(frozen=True)
class ExportsBlocked:
    """A ``null`` target: the sub-path is explicitly not exported."""


ExportsTarget = Union[ExportsLiteral, ExportsNode, ExportsFallback, ExportsBlocked]


def parse_exports(raw: Any) -> ExportsTarget:
    """Convert a decoded ``exports`` value into an ExportsTarget.

    Raises:
        ValueError: for values that are not strings, mappings, lists or null.
    """
    if raw is None:
        return ExportsBlocked()
    if isinstance(raw, str):
        return ExportsLiteral(raw)
    if isinstance(raw, dict):
        return ExportsNode(tuple((str(key), parse_exports(value)) for key, value in raw.items()))
    if isinstance(raw, list):
        return ExportsFallback(tuple(parse_exports(value) for value in raw))
    raise ValueError(f"unsupported exports value: {raw!r}")


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


@dataclass(frozen=True)
class Descriptor:
    """One package's declared contract."""

    name: str
    version: str = ""
    module_type: ModuleType = ModuleType.UNSPECIFIED
    main: Optional[str] = None
    module: Optional[str] = None
    exports: Optional[ExportsTarget] = None
    dependencies: Tuple[str, ...] = ()
    directory: Optional[Path] = field(default=None, compare=False)

    @property
    def is_es_typed(self) -> bool:
        return self.module_type is ModuleType.MODULE

    @classmethod
    def from_dict(
        cls,
        data: Any,
        directory: Optional[Path] = None,
        name: Optional[str] = None,
    ) -> "Descriptor":
        """Build a descriptor from a decoded package.json object.

        Args:
            data: Decoded JSON.
            directory: Package directory on disk, if known.
            name: Name to fall back to when the manifest has none.

        Raises:
            DescriptorLoadError: if the manifest is structurally invalid.
        """
        label = name or (data.get("name") if isinstance(data, dict) else None) or "<unknown>"
        if not isinstance(data, dict):
            raise DescriptorLoadError(label, "package.json is not a JSON object", directory)

        try:
            pkg_name = _optional_str(data, "name") or name
            if not pkg_name:
                raise ValueError("missing 'name'")
            deps = data.get("dependencies") or {}
            if not isinstance(deps, dict):
                raise ValueError("'dependencies' must be an object")
            exports = parse_exports(data["exports"]) if data.get("exports") is not None else None
            return cls(
                name=pkg_name,
                version=str(data.get("version") or ""),
                module_type=ModuleType.from_field(data.get("type")),
                main=_optional_str(data, "main"),
                module=_optional_str(data, "module"),
                exports=exports,
                dependencies=tuple(str(dep) for dep in deps),
                directory=directory,
            )
        except ValueError as e:
            raise DescriptorLoadError(label, str(e), directory) from e
