"""External bundler collaborators.

A bundler turns one entry module into exactly one self-contained ES module
file. The actual work is done by a JavaScript tool run as a subprocess; this
module only builds the command line and reports failures as BundlerError.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from constants import Bundlers, Constants
from common.errors import BundlerError
from common.logging_utils import Timer, extra_context

logger = logging.getLogger(__name__)


class Bundler:
    """Base class: run a command that bundles ``entry`` into ``output``."""

    name = "bundler"

    def __init__(
        self,
        executable: Sequence[str] = ("npx",),
        cwd: Optional[Path] = None,
        timeout: Optional[float] = Constants.BUNDLER_TIMEOUT,
    ):
        """Initialize the bundler.

        Args:
            executable: Command prefix used to launch the tool.
            cwd: Working directory; should be the project holding node_modules.
            timeout: Seconds before the run is killed, None for no limit.
        """
        self._executable = list(executable)
        self._cwd = cwd
        self._timeout = timeout

    def build_command(self, entry: Path, output: Path) -> List[str]:
        raise NotImplementedError

    async def bundle(self, entry: Path, output: Path) -> None:
        """Bundle ``entry`` into ``output``.

        Raises:
            BundlerError: if the tool cannot start, fails, or times out.
        """
        command = self.build_command(entry, output)
        logger.info(
            "Bundling %s -> %s",
            entry,
            output.name,
            extra=extra_context(event="bundle_start", component="bundler", tool=self.name),
        )
        with Timer() as timer:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *command,
                    cwd=str(self._cwd) if self._cwd else None,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                )
            except OSError as e:
                raise BundlerError(f"{self.name} could not be started: {e}") from e

            try:
                stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
            except asyncio.TimeoutError as e:
                proc.kill()
                await proc.wait()
                raise BundlerError(f"{self.name} timed out after {self._timeout} seconds") from e

        output_text = (stdout or b"").decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise BundlerError(
                f"{self.name} exited with status {proc.returncode}: {output_text.strip()}",
                returncode=proc.returncode,
                output=output_text,
            )
        logger.debug(
            "Bundled %s in %sms",
            output.name,
            timer.duration_ms(),
            extra=extra_context(
                event="bundle_done",
                component="bundler",
                tool=self.name,
                duration_ms=timer.duration_ms(),
            ),
        )


class RollupBundler(Bundler):
    """rollup with the node-resolve, commonjs and json plugins."""

    name = Bundlers.ROLLUP.value

    def build_command(self, entry: Path, output: Path) -> List[str]:
        return self._executable + [
            "rollup",
            str(entry),
            "--format", "es",
            "--file", str(output),
            "--plugin", "node-resolve",
            "--plugin", "commonjs",
            "--plugin", "json",
            "--silent",
        ]


class EsbuildBundler(Bundler):
    """esbuild, which converts CommonJS to ESM natively."""

    name = Bundlers.ESBUILD.value

    def build_command(self, entry: Path, output: Path) -> List[str]:
        return self._executable + [
            "esbuild",
            str(entry),
            "--bundle",
            "--format=esm",
            "--platform=browser",
            "--log-level=warning",
            f"--outfile={output}",
        ]


_BUNDLERS = {
    Bundlers.ROLLUP.value: RollupBundler,
    Bundlers.ESBUILD.value: EsbuildBundler,
}


def create_bundler(
    name: str,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = Constants.BUNDLER_TIMEOUT,
    executable: Sequence[str] = ("npx",),
) -> Bundler:
    """Create a bundler by name.

    Raises:
        ValueError: for an unknown bundler name.
    """
    try:
        bundler_cls = _BUNDLERS[name.lower()]
    except KeyError as e:
        raise ValueError(
            f"Unknown bundler '{name}'; expected one of {', '.join(sorted(_BUNDLERS))}"
        ) from e
    return bundler_cls(executable=executable, cwd=cwd, timeout=timeout)
