"""Shared fixtures: throwaway node_modules trees and a recording bundler."""

import json
from pathlib import Path
from typing import List, Tuple

import pytest

from common.errors import BundlerError
from transcode.bundler import Bundler


def write_package(modules_root: Path, name: str, **fields) -> Path:
    """Create ``<modules_root>/<name>/package.json`` and return the package dir."""
    pkg_dir = modules_root / name
    pkg_dir.mkdir(parents=True, exist_ok=True)
    manifest = {"name": name, "version": fields.pop("version", "1.0.0")}
    manifest.update(fields)
    (pkg_dir / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
    return pkg_dir


class FakeBundler(Bundler):
    """Bundler stand-in that writes a fixed ES module and records its calls."""

    name = "fake"

    def __init__(self, fail: bool = False, output: str = "export default 42;\n"):
        super().__init__()
        self.fail = fail
        self.output = output
        self.calls: List[Tuple[Path, Path]] = []
        self.entry_texts: List[str] = []

    async def bundle(self, entry: Path, output: Path) -> None:
        self.calls.append((entry, output))
        if entry.exists():
            self.entry_texts.append(entry.read_text(encoding="utf-8"))
        if self.fail:
            raise BundlerError("fake bundler failure", returncode=1)
        output.write_text(self.output, encoding="utf-8")


@pytest.fixture
def project(tmp_path):
    """A project directory with an empty node_modules and app directory."""
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "app").mkdir()
    return tmp_path


@pytest.fixture
def modules_root(project):
    return project / "node_modules"


@pytest.fixture
def fake_bundler():
    return FakeBundler()
