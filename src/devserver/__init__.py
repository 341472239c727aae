"""bundle-free development server package.

Serves a client side app and its node_modules so the browser can import npm
dependencies by bare name: an import map is injected into HTML documents and
CommonJS packages are transcoded to ES modules on demand.

The aiohttp server lives in ``devserver.server`` and is imported on demand.
"""

from .config import DevServerConfig, ConfigError, load_config_file
from .context import ResolutionContext
from .routing import RouteAction, RouteDecision, decide

__all__ = [
    "DevServerConfig",
    "ConfigError",
    "load_config_file",
    "ResolutionContext",
    "RouteAction",
    "RouteDecision",
    "decide",
]
