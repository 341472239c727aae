"""Path-rewrite decisions for requests in the resolved-modules namespace.

Given a request path relative to the mount base, decide whether to redirect
to a package's own ES file, rewrite to a transcoded cache file, answer 404,
or let the next handler deal with it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from constants import Constants
from resolution.exports import resolve_export, strip_relative
from .context import ResolutionContext

logger = logging.getLogger(__name__)

_MODULE_PATH = re.compile(
    r"^" + re.escape(Constants.MODULES_NAMESPACE) + r"/((?:@[^/]+/)?[^/@][^/]*)(/.*)?$"
)


class RouteAction(Enum):
    """What the server should do with a request."""

    REDIRECT = "redirect"
    REWRITE = "rewrite"
    PASS = "pass"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RouteDecision:
    """Routing outcome; ``target`` is relative to the mount base."""

    action: RouteAction
    target: Optional[str] = None
    package: Optional[str] = None


PASS = RouteDecision(RouteAction.PASS)


def parse_module_path(rel_path: str) -> Optional[Tuple[str, Optional[str]]]:
    """Split ``node_modules/bundle-free/<name>/<sub>`` into name and sub-path."""
    m = _MODULE_PATH.match(rel_path.lstrip("/"))
    if not m:
        return None
    return m.group(1), m.group(2)


async def decide(context: ResolutionContext, rel_path: str) -> RouteDecision:
    """Decide how to serve ``rel_path`` (a path relative to the mount base)."""
    parsed = parse_module_path(rel_path)
    if parsed is None:
        return PASS
    name, sub_path = parsed

    descriptor = context.exported.get(name)
    if descriptor is None:
        logger.debug("Request for unmapped module %s", name)
        return RouteDecision(RouteAction.NOT_FOUND, package=name)

    if context.is_prebundled(name):
        if sub_path not in (None, "", "/"):
            return RouteDecision(RouteAction.NOT_FOUND, package=name)
        url = await context.cache.prebundle(descriptor, context.config.prebundle_export_shim)
        if url is None:
            return RouteDecision(RouteAction.NOT_FOUND, package=name)
        return RouteDecision(RouteAction.REWRITE, target=url, package=name)

    import_file = resolve_export(descriptor, sub_path, [Constants.CONDITION_IMPORT])
    if import_file:
        target = f"{Constants.NODE_MODULES_DIR}/{name}/{strip_relative(import_file)}"
        return RouteDecision(RouteAction.REDIRECT, target=target, package=name)

    url = await context.cache.get_or_create(descriptor, sub_path, needs_export_enumeration=True)
    if url is None:
        return RouteDecision(RouteAction.NOT_FOUND, package=name)
    return RouteDecision(RouteAction.REWRITE, target=url, package=name)
