"""Discover the named exports of a CommonJS module.

Bundlers cannot always work out the exports of a CommonJS file statically, so
the transcode cache bundles a small re-export shim that names every export
explicitly. Two enumerators are available:

* StaticExportEnumerator scans the source for the usual assignment forms. It
  needs nothing but the file and misses exports built dynamically (loops,
  ``Object.assign`` with computed objects, re-exports of other modules).
* NodeExportEnumerator loads the module in node and lists the keys of the
  resulting namespace, which is exact but requires node on PATH.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from constants import ExportEnumeration
from common.errors import ExportEnumerationError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

_ASSIGNMENT_PATTERNS = [
    re.compile(r"(?:^|[^.\w$])(?:module\.)?exports\.([A-Za-z_$][\w$]*)\s*=(?!=)", re.MULTILINE),
    re.compile(r"(?:^|[^.\w$])(?:module\.)?exports\[\s*['\"]([A-Za-z_$][\w$]*)['\"]\s*\]\s*=(?!=)", re.MULTILINE),
    re.compile(r"Object\.defineProperty\(\s*(?:module\.)?exports\s*,\s*['\"]([A-Za-z_$][\w$]*)['\"]"),
]
_OBJECT_EXPORT = re.compile(r"module\.exports\s*=\s*\{([^{}]*)\}", re.DOTALL)
_OBJECT_KEY = re.compile(r"(?:^|,)\s*(?:['\"])?([A-Za-z_$][\w$]*)(?:['\"])?\s*(?=[:,]|$)")

# Keys node adds to every CommonJS namespace that are not real exports
_SYNTHETIC_KEYS = {"module.exports", "__esModule"}

_NODE_SCRIPT = (
    "const {pathToFileURL} = require('url');"
    "import(pathToFileURL(process.argv[1]).href)"
    ".then(m => { process.stdout.write(JSON.stringify(Object.keys(m))); })"
    ".catch(e => { process.stderr.write(String(e && e.message || e)); process.exit(1); });"
)


def _valid_names(names: Iterable[str]) -> List[str]:
    result: List[str] = []
    for name in names:
        if name in _SYNTHETIC_KEYS or not _IDENTIFIER.match(name):
            continue
        if name not in result:
            result.append(name)
    return result


def build_export_shim(names: Sequence[str], source: Path) -> str:
    """Return the text of a module re-exporting ``names`` from ``source``."""
    exported = _valid_names(names)
    return f"export {{ {', '.join(exported)} }} from {json.dumps(str(source))};\n"


class StaticExportEnumerator:
    """Pattern-scan CommonJS source for exported names."""

    name = ExportEnumeration.STATIC.value

    def scan(self, source_text: str) -> List[str]:
        names: List[str] = []
        for pattern in _ASSIGNMENT_PATTERNS:
            names.extend(m.group(1) for m in pattern.finditer(source_text))
        for block in _OBJECT_EXPORT.finditer(source_text):
            names.extend(m.group(1) for m in _OBJECT_KEY.finditer(block.group(1)))
        # CommonJS modules always have a default export once bundled
        return ["default"] + sorted(n for n in set(_valid_names(names)) if n != "default")

    async def enumerate(self, source: Path) -> List[str]:
        try:
            text = await asyncio.to_thread(Path(source).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ExportEnumerationError(f"Cannot read {source}: {e}") from e
        return self.scan(text)


class NodeExportEnumerator:
    """Load the module in node and list its namespace keys."""

    name = ExportEnumeration.NODE.value

    def __init__(self, node: str = "node", cwd: Optional[Path] = None, timeout: float = 30):
        self._node = node
        self._cwd = cwd
        self._timeout = timeout

    async def enumerate(self, source: Path) -> List[str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._node, "-e", _NODE_SCRIPT, str(source),
                cwd=str(self._cwd) if self._cwd else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExportEnumerationError(f"node could not be started: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise ExportEnumerationError(f"Loading {source} timed out") from e

        if proc.returncode != 0:
            raise ExportEnumerationError(
                f"Loading {source} failed: {stderr.decode('utf-8', errors='replace').strip()}"
            )
        try:
            keys = json.loads(stdout.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ExportEnumerationError(f"Unexpected output enumerating {source}") from e
        return _valid_names(str(key) for key in keys)


def create_enumerator(name: str, cwd: Optional[Path] = None):
    """Create an export enumerator by strategy name.

    Raises:
        ValueError: for an unknown strategy.
    """
    if name == ExportEnumeration.STATIC.value:
        return StaticExportEnumerator()
    if name == ExportEnumeration.NODE.value:
        return NodeExportEnumerator(cwd=cwd)
    raise ValueError(f"Unknown export enumeration '{name}'; expected 'static' or 'node'")
