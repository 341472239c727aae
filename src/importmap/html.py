"""Best-effort HTML patching: import map injection and bare reference fixes.

Patching is regex based and tolerant. Documents that do not look as expected
are patched partially and returned; nothing here raises for odd markup.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Sequence, Union

from constants import Constants
from .builder import ImportMap

logger = logging.getLogger(__name__)

_HEAD_BLOCK = re.compile(r"(<head\b[^>]*>)(.*?)(</head\s*>)", re.IGNORECASE | re.DOTALL)
_IMPORT_MAP_BLOCK = re.compile(
    r"(<script\b[^>]*\btype\s*=\s*['\"]?importmap['\"]?[^>]*>)(.*?)(</script\s*>)",
    re.IGNORECASE | re.DOTALL,
)
_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)


@dataclass(frozen=True)
class Replacement:
    """A user supplied text substitution applied to every served document.

    ``pattern`` is literal text unless ``regex`` is set, in which case
    ``replacement`` may use ``\\1`` style group references.
    """

    pattern: str
    replacement: str
    regex: bool = False

    @classmethod
    def parse(cls, value: Union[Dict[str, Any], "Replacement"]) -> "Replacement":
        """Accept ``{"from": ..., "to": ..., "regex": bool}``.

        Raises:
            ValueError: if ``from`` is missing, the pattern does not compile
                or a regex replacement refers to a group the pattern lacks.
        """
        if isinstance(value, Replacement):
            return value
        if not isinstance(value, dict) or "from" not in value:
            raise ValueError(f"Replacement needs a 'from' key: {value!r}")
        replacement = cls(
            pattern=str(value["from"]),
            replacement=str(value.get("to", "")),
            regex=bool(value.get("regex", False)),
        )
        rx = replacement.compile()
        if replacement.regex:
            # Group references are only checked when the template is expanded
            try:
                rx.sub(replacement.replacement, "")
            except re.error as e:
                raise ValueError(f"Invalid replacement {replacement.replacement!r}: {e}") from e
        return replacement

    def compile(self) -> Pattern[str]:
        try:
            return re.compile(self.pattern if self.regex else re.escape(self.pattern))
        except re.error as e:
            raise ValueError(f"Invalid replacement pattern {self.pattern!r}: {e}") from e

    def apply(self, text: str) -> str:
        rx = self.compile()
        if self.regex:
            return rx.sub(self.replacement, text)
        return rx.sub(lambda _m: self.replacement, text)


@dataclass
class PatchOptions:
    """Optional features of the HTML patcher."""

    module_names: Sequence[str] = ()
    overlay: bool = False
    livereload: Union[bool, int] = False
    replacements: List[Replacement] = field(default_factory=list)

    @property
    def livereload_port(self) -> Optional[int]:
        if self.livereload is False or self.livereload is None:
            return None
        if self.livereload is True:
            return Constants.LIVERELOAD_PORT
        return int(self.livereload)


def build_module_ref_regex(names: Sequence[str]) -> Optional[Pattern[str]]:
    """Regex matching a quote followed by one of ``names`` and a slash."""
    if not names:
        return None
    alternatives = "|".join(re.escape(name) for name in names)
    return re.compile(rf"(['\"])((?:{alternatives})/)")


def overlay_tag(base: str) -> str:
    return f'<script src="{base}{Constants.MODULES_NAMESPACE}/{Constants.OVERLAY_SCRIPT}"></script>\n'


def livereload_tag(port: int) -> str:
    return (
        "<script>\n"
        "    document.write('<script src=\"http://' + (location.host || 'localhost').split(':')[0] + "
        f"':{port}/livereload.js?snipver=1\"></' + 'script>')\n"
        "</script>\n"
    )


def _import_map_tag(data: Dict[str, Any]) -> str:
    return f'<script type="importmap">\n{json.dumps(data, indent=4)}\n</script>\n'


def merge_import_maps(existing: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``new`` into ``existing``; new entries overwrite same names."""
    merged = dict(existing)
    imports = dict(existing.get("imports") or {})
    imports.update(new.get("imports") or {})
    merged["imports"] = imports
    return merged


class HtmlPatcher:
    """Patch HTML documents so bare module imports work under a mount path."""

    def __init__(self, import_map: Optional[ImportMap], options: Optional[PatchOptions] = None):
        self._import_map = import_map
        self._options = options or PatchOptions()
        self._module_ref = build_module_ref_regex(list(self._options.module_names))

    @property
    def options(self) -> PatchOptions:
        return self._options

    def patch(self, base: str, html: str) -> str:
        """Return ``html`` patched for the mount path ``base``."""
        if self._module_ref is not None:
            prefix = f"{base}{Constants.MODULES_NAMESPACE}/"
            html = self._module_ref.sub(lambda m: f"{m.group(1)}{prefix}{m.group(2)}", html)

        head = _HEAD_BLOCK.search(html)
        if head is None:
            logger.debug("No <head> block found; skipping import map injection")
        else:
            head_html = self._patch_head(base, head.group(1), head.group(2), head.group(3))
            html = html[:head.start()] + head_html + html[head.end():]

            port = self._options.livereload_port
            if port is not None:
                html = self._inject_livereload(html, port)

        for replacement in self._options.replacements:
            html = replacement.apply(html)
        return html

    def _patch_head(self, base: str, open_tag: str, content: str, close_tag: str) -> str:
        injected = ""
        if self._import_map is not None:
            new_map = self._import_map.resolve(base)
            existing = _IMPORT_MAP_BLOCK.search(content)
            if existing is not None:
                content = (
                    content[:existing.start()]
                    + self._merged_block(existing, new_map)
                    + content[existing.end():]
                )
            else:
                injected += _import_map_tag(new_map)
        if self._options.overlay:
            injected += overlay_tag(base)
        return f"{open_tag}\n{injected}{content}{close_tag}" if injected else f"{open_tag}{content}{close_tag}"

    def _merged_block(self, existing: "re.Match[str]", new_map: Dict[str, Any]) -> str:
        try:
            current = json.loads(existing.group(2).strip() or "{}")
            if not isinstance(current, dict):
                raise ValueError("import map is not a JSON object")
            if not isinstance(current.get("imports") or {}, dict):
                raise ValueError("'imports' is not a JSON object")
        except ValueError as e:
            logger.warning("Replacing unreadable import map: %s", e)
            current = {}
        merged = merge_import_maps(current, new_map)
        return f"{existing.group(1)}\n{json.dumps(merged, indent=4)}\n{existing.group(3)}"

    def _inject_livereload(self, html: str, port: int) -> str:
        tag = livereload_tag(port)
        matches = list(_BODY_CLOSE.finditer(html))
        if not matches:
            return html + tag
        last = matches[-1]
        return html[:last.start()] + tag + html[last.start():]
