"""Development server for bundle-free ES module apps using aiohttp."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any, Dict, Optional

from aiohttp import web

from constants import Constants
from common.logging_utils import extra_context
from transcode.bundler import Bundler
from .config import DevServerConfig
from .context import ResolutionContext
from .routing import RouteAction, decide

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
OVERLAY_FILE = STATIC_DIR / "overlay.js"

_HTML_SUFFIXES = (".html", ".htm")


def safe_join(root: Path, rel_path: str) -> Optional[Path]:
    """Join ``rel_path`` under ``root``, refusing anything that escapes it."""
    root = root.resolve()
    candidate = (root / rel_path.lstrip("/")).resolve()
    try:
        candidate.relative_to(root)
    except ValueError:
        return None
    return candidate


class BundleFreeServer:
    """HTTP server for client side ES module apps.

    Serves the app directory and node_modules under ``config.base``, maps
    bare module requests to ES files (transcoding CommonJS on demand) and
    injects the import map into HTML documents.
    """

    def __init__(
        self,
        config: DevServerConfig,
        context: Optional[ResolutionContext] = None,
        bundler: Optional[Bundler] = None,
    ):
        """Initialize the server.

        Args:
            config: Server configuration.
            context: Prebuilt resolution context; created on startup if None.
            bundler: Bundler override, used when the context is created here.
        """
        self._config = config
        self._context = context
        self._bundler = bundler
        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def context(self) -> Optional[ResolutionContext]:
        return self._context

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_route("*", "/{path:.*}", self._handle_request)
        app.on_startup.append(self._on_startup)
        return app

    async def _on_startup(self, app: web.Application) -> None:
        """Build the resolution context before the first request."""
        if self._context is None:
            self._context = await ResolutionContext.create(self._config, bundler=self._bundler)

    def _health(self) -> web.Response:
        context = self._context
        return web.json_response({
            "status": "ok",
            "base": self._config.base,
            "modules": sorted(context.exported) if context else [],
            "cache": context.cache.stats() if context else {},
        })

    async def _handle_request(self, request: web.Request) -> web.StreamResponse:
        """Route a request to module resolution, HTML patching or static files."""
        base = self._config.base
        path = request.path

        if base != "/" and path == base.rstrip("/"):
            location = base + (f"?{request.query_string}" if request.query_string else "")
            raise web.HTTPFound(location)
        if not path.startswith(base):
            raise web.HTTPNotFound()
        if request.method not in ("GET", "HEAD"):
            raise web.HTTPMethodNotAllowed(request.method, ["GET", "HEAD"])

        rel_path = path[len(base):]

        if rel_path == Constants.HEALTH_PATH:
            return self._health()
        if self._config.overlay and rel_path == f"{Constants.MODULES_NAMESPACE}/{Constants.OVERLAY_SCRIPT}":
            return web.FileResponse(OVERLAY_FILE)
        if self._context is None:
            raise web.HTTPServiceUnavailable()

        decision = await decide(self._context, rel_path)
        if decision.action is RouteAction.REDIRECT:
            raise web.HTTPFound(base + decision.target)
        if decision.action is RouteAction.NOT_FOUND:
            logger.info(
                "Cannot serve module path %s",
                rel_path,
                extra=extra_context(event="module_not_found", component="server", package=decision.package),
            )
            raise web.HTTPNotFound()
        if decision.action is RouteAction.REWRITE:
            cached = self._context.cache.path_for_url(decision.target)
            if cached is not None and await asyncio.to_thread(cached.is_file):
                return web.FileResponse(cached, headers={"Content-Type": "application/javascript"})
            rel_path = decision.target

        if rel_path == "" or rel_path.endswith("/"):
            rel_path += Constants.DEFAULT_DOCUMENT

        response = await self._serve_file(rel_path)
        if response is not None:
            return response

        if self._config.spa:
            response = await self._serve_html(self._config.app_dir, self._config.default)
            if response is not None:
                return response

        raise web.HTTPNotFound()

    async def _serve_file(self, rel_path: str) -> Optional[web.StreamResponse]:
        node_prefix = Constants.NODE_MODULES_DIR + "/"
        if rel_path.startswith(node_prefix):
            root = self._context.modules_root
            rel_path = rel_path[len(node_prefix):]
        else:
            root = self._config.app_dir

        if rel_path.lower().endswith(_HTML_SUFFIXES) and root == self._config.app_dir:
            return await self._serve_html(root, rel_path)

        target = safe_join(root, rel_path)
        if target is None or not await asyncio.to_thread(target.is_file):
            return None
        return web.FileResponse(target)

    async def _serve_html(self, root: Path, rel_path: str) -> Optional[web.Response]:
        target = safe_join(root, rel_path)
        if target is None:
            return None
        try:
            content = await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            # Probably not found; let the caller keep looking
            return None
        if self._context.patcher is not None:
            content = self._context.patcher.patch(self._config.base, content)
        return web.Response(text=content, content_type="text/html")

    def cache_stats(self) -> Dict[str, Any]:
        """Get transcode cache statistics."""
        return self._context.cache.stats() if self._context else {}

    async def start(self) -> None:
        """Start the server."""
        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

        logger.info(
            "bundle-free server listening on http://%s:%s%s",
            self._config.host, self._config.port, self._config.base,
        )
        logger.info("Serving app from: %s", self._config.app_dir)
        if self._context is not None:
            logger.info("Serving node_modules from: %s", self._context.modules_root)

    async def run_forever(self) -> None:
        """Start the server and run until interrupted."""
        await self.start()
        self._stop_event = asyncio.Event()
        try:
            await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the server."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None


def run_server_sync(config: DevServerConfig, context: Optional[ResolutionContext] = None) -> None:
    """Run the server synchronously.

    Installs signal handlers for SIGTERM and SIGINT for clean shutdown.

    Args:
        config: Server configuration.
        context: Prebuilt resolution context, if the caller already made one.
    """
    server = BundleFreeServer(config, context=context)
    loop = asyncio.new_event_loop()

    async def run():
        await server.start()
        stop_event = asyncio.Event()
        running_loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            running_loop.add_signal_handler(sig, stop_event.set)
        await stop_event.wait()
        logger.info("Shutdown signal received, stopping...")
        await server.stop()

    try:
        loop.run_until_complete(run())
    except KeyboardInterrupt:
        # Fallback for platforms where signal handlers don't work (Windows)
        loop.run_until_complete(server.stop())
    finally:
        loop.close()
        logger.info("Server shutdown complete")
