"""Export resolution: map (package, sub-path, conditions) to a file.

Follows the npm package.json rules as a pure function over the descriptor:

* an ``exports`` map is walked depth first, trying sub-path patterns (keys
  starting with ``.``) before the caller's conditions before ``default`` at
  every level;
* packages without ``exports`` fall back to ``module``/``main``/``type``.

A miss is reported as ``None`` and is never an error; callers move on to the
next strategy (for example transcoding a ``require`` entry point).
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Optional, Pattern, Sequence

from constants import Constants
from .descriptor import (
    Descriptor,
    ExportsBlocked,
    ExportsFallback,
    ExportsLiteral,
    ExportsNode,
    ExportsTarget,
)

ROOT = "."

_UNBOUND = object()


def normalize_sub_path(sub_path: Optional[str]) -> str:
    """Normalize a requested sub-path to the ``./x`` form used by exports keys.

    ``None``, ``""`` and ``"/"`` become the root ``"."``.
    """
    if not sub_path or sub_path == "/":
        return ROOT
    if sub_path == ROOT or sub_path.startswith("./"):
        return sub_path
    if sub_path.startswith("/"):
        return ROOT + sub_path
    return "./" + sub_path


@lru_cache(maxsize=1024)
def pattern_to_regex(pattern: str) -> Pattern[str]:
    """Compile an exports key into an anchored regex.

    Every regex metacharacter is escaped except ``*``, which becomes a
    capturing wildcard.
    """
    parts = [re.escape(part) for part in pattern.split("*")]
    return re.compile("^" + "(.*)".join(parts) + "$")


def _substitute(target: str, capture) -> str:
    # Only the first placeholder is replaced, as npm does
    if capture is _UNBOUND or capture is None:
        return target
    return target.replace("*", capture, 1)


def _match(node: ExportsTarget, sub_path: str, conditions: Sequence[str], capture) -> Optional[str]:
    if isinstance(node, ExportsLiteral):
        if capture is not _UNBOUND:
            return _substitute(node.target, capture)
        if sub_path != ROOT:
            return None
        return node.target

    if isinstance(node, ExportsBlocked):
        return None

    if isinstance(node, ExportsFallback):
        for option in node.options:
            found = _match(option, sub_path, conditions, capture)
            if found:
                return found
        return None

    if not isinstance(node, ExportsNode):
        return None

    # Sub-path patterns: first syntactic match wins, in declaration order
    for key, child in node.entries:
        if not key.startswith("."):
            continue
        m = pattern_to_regex(key).match(sub_path)
        if m:
            return _match(child, sub_path, conditions, m.group(1) if m.groups() else None)

    for condition in conditions:
        child = node.get(condition)
        if child is None:
            continue
        found = _match(child, sub_path, conditions, capture)
        if found:
            return found

    child = node.get(Constants.CONDITION_DEFAULT)
    if child is not None:
        found = _match(child, sub_path, conditions, capture)
        if found:
            return found

    return None


def _legacy_sub_path(descriptor: Descriptor, sub_path: str, conditions: Sequence[str]) -> Optional[str]:
    format_checked = False
    for condition in conditions:
        if condition == Constants.CONDITION_IMPORT:
            format_checked = True
            if sub_path.endswith(Constants.ES_EXTENSION) or descriptor.is_es_typed:
                return sub_path
        elif condition == Constants.CONDITION_REQUIRE:
            format_checked = True
            if sub_path.endswith(Constants.LEGACY_EXTENSION) or not descriptor.is_es_typed:
                return sub_path
    # Conditions that say nothing about module format pass the path through
    return None if format_checked else sub_path


def _legacy_root(descriptor: Descriptor, conditions: Sequence[str]) -> Optional[str]:
    main = descriptor.main
    for condition in conditions:
        if condition == Constants.CONDITION_IMPORT:
            if descriptor.module:
                return descriptor.module
            if main and (
                main.endswith(Constants.ES_EXTENSION)
                or (descriptor.is_es_typed and not main.endswith(Constants.LEGACY_EXTENSION))
            ):
                return main
        elif condition == Constants.CONDITION_REQUIRE:
            if main and (
                main.endswith(Constants.LEGACY_EXTENSION)
                or (not descriptor.is_es_typed and not main.endswith(Constants.ES_EXTENSION))
            ):
                return main
            if not descriptor.is_es_typed:
                return Constants.DEFAULT_LEGACY_ENTRY
    return None


def resolve_export(
    descriptor: Descriptor,
    sub_path: Optional[str],
    conditions: Sequence[str],
) -> Optional[str]:
    """Return the package-relative file that serves ``sub_path``, or None.

    Args:
        descriptor: Package to resolve within.
        sub_path: Requested sub-path (``"."``, ``"./feature"``, ``"/x.js"``...).
        conditions: Usage conditions in priority order, e.g. ``["import"]``.
    """
    sub_path = normalize_sub_path(sub_path)

    if descriptor.exports is not None:
        return _match(descriptor.exports, sub_path, conditions, _UNBOUND)

    if sub_path != ROOT:
        return _legacy_sub_path(descriptor, sub_path, conditions)
    return _legacy_root(descriptor, conditions)


def strip_relative(path: str) -> str:
    """Turn a resolved ``./dist/x.js`` target into ``dist/x.js`` for URLs."""
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")
