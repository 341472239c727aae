"""Configuration for the development server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from constants import Bundlers, Constants, ExportEnumeration
from importmap.builder import ModuleRequest
from importmap.html import PatchOptions, Replacement

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised for configuration values that cannot be used."""


def normalize_base(base: Optional[str]) -> str:
    """Mount paths always start and end with ``/``."""
    base = (base or "/").strip()
    if not base.startswith("/"):
        base = "/" + base
    if not base.endswith("/"):
        base += "/"
    return base


def _parse_livereload(value: Any) -> Union[bool, int]:
    if value is None or value is False:
        return False
    if value is True:
        return True
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off", ""):
            return False
    try:
        port = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"livereload must be a boolean or a port number, got {value!r}") from e
    if not 0 < port < 65536:
        raise ConfigError(f"livereload port out of range: {port}")
    return port


@dataclass
class DevServerConfig:
    """Configuration for the development server."""

    host: str = Constants.DEFAULT_HOST
    port: int = Constants.DEFAULT_PORT
    base: str = "/"
    path: str = "."
    root: Optional[str] = None
    modules: List[ModuleRequest] = field(default_factory=list)
    spa: bool = False
    default: str = Constants.DEFAULT_DOCUMENT
    overlay: bool = False
    livereload: Union[bool, int] = False
    replace: List[Replacement] = field(default_factory=list)
    bundler: str = Bundlers.ROLLUP.value
    bundler_timeout: float = Constants.BUNDLER_TIMEOUT
    export_enumeration: str = ExportEnumeration.STATIC.value
    prebundle_export_shim: bool = False
    allow_external: bool = False

    def __post_init__(self) -> None:
        self.base = normalize_base(self.base)
        self.port = int(self.port)
        self.modules = [ModuleRequest.parse(m) for m in self.modules]
        self.replace = [Replacement.parse(r) for r in self.replace]
        self.livereload = _parse_livereload(self.livereload)
        if self.bundler not in [b.value for b in Bundlers]:
            raise ConfigError(f"Unknown bundler: {self.bundler}")
        if self.export_enumeration not in [e.value for e in ExportEnumeration]:
            raise ConfigError(f"Unknown export enumeration: {self.export_enumeration}")

    @property
    def app_dir(self) -> Path:
        return Path(self.path).resolve()

    @property
    def search_root(self) -> Path:
        """Directory the node_modules search starts from."""
        return Path(self.root).resolve() if self.root else self.app_dir

    def patch_options(self) -> PatchOptions:
        return PatchOptions(
            module_names=[m.name for m in self.modules],
            overlay=self.overlay,
            livereload=self.livereload,
            replacements=list(self.replace),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DevServerConfig":
        """Create config from a mapping, ignoring unknown keys with a warning.

        Raises:
            ConfigError: for invalid values.
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            name = str(key).replace("-", "_")
            if name not in known:
                logger.warning("Ignoring unknown configuration key: %s", key)
                continue
            values[name] = value
        try:
            return cls(**values)
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(str(e)) from e

    @classmethod
    def from_args(cls, args: Any, base_config: Optional["DevServerConfig"] = None) -> "DevServerConfig":
        """Create config from CLI arguments layered over ``base_config``.

        Args:
            args: Parsed CLI arguments namespace.
            base_config: Values loaded from a config file, if any.

        Returns:
            DevServerConfig instance.
        """
        values: Dict[str, Any] = {}
        if base_config is not None:
            values = {f.name: getattr(base_config, f.name) for f in fields(cls)}

        overrides = {
            "host": getattr(args, "HOST", None),
            "port": getattr(args, "PORT", None),
            "base": getattr(args, "BASE", None),
            "path": getattr(args, "APP_PATH", None),
            "root": getattr(args, "ROOT", None),
            "default": getattr(args, "DEFAULT_DOCUMENT", None),
            "livereload": getattr(args, "LIVERELOAD", None),
            "bundler": getattr(args, "BUNDLER", None),
            "bundler_timeout": getattr(args, "BUNDLER_TIMEOUT", None),
            "export_enumeration": getattr(args, "EXPORT_ENUMERATION", None),
        }
        for key, value in overrides.items():
            if value is not None:
                values[key] = value

        for flag, key in (
            ("SPA", "spa"),
            ("OVERLAY", "overlay"),
            ("PREBUNDLE_EXPORT_SHIM", "prebundle_export_shim"),
            ("ALLOW_EXTERNAL", "allow_external"),
        ):
            if getattr(args, flag, False) is True:
                values[key] = True

        modules = getattr(args, "MODULES", None)
        if modules:
            values["modules"] = list(values.get("modules") or []) + list(modules)

        return cls.from_dict(values)


def find_config_file(directory: Path) -> Optional[Path]:
    """Return the first default config file present in ``directory``."""
    for name in Constants.CONFIG_FILES:
        candidate = Path(directory) / name
        if candidate.is_file():
            return candidate
    return None


def load_config_file(config_path: Union[str, Path]) -> DevServerConfig:
    """Load configuration from a YAML (or JSON) file.

    A top-level ``bundlefree`` section is used when present.

    Raises:
        ConfigError: if the file cannot be read or holds invalid values.
    """
    if not os.path.isfile(config_path):
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    section = data.get("bundlefree", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'bundlefree' section in {config_path} must be a mapping")
    logger.info("Loaded configuration from: %s", config_path)
    return DevServerConfig.from_dict(section)
