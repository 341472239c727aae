"""Tests for the serve CLI helpers."""

import logging
from unittest.mock import patch

import pytest

import bundlefree
from args import parse_args
from cli_serve import (
    _clear_cache,
    _enforce_local_binding,
    _is_local_bind_host,
    _load_config,
    run_dev_server,
)
from common.errors import DescriptorLoadError
from constants import ExitCodes
from devserver.config import DevServerConfig
from transcode.cache import default_cache_dir


def test_is_local_bind_host_loopback():
    """Loopback hosts should be treated as local."""
    assert _is_local_bind_host("127.0.0.1") is True
    assert _is_local_bind_host("localhost") is True
    assert _is_local_bind_host("::1") is True


def test_is_local_bind_host_external():
    """Non-local hosts should be treated as external."""
    assert _is_local_bind_host("0.0.0.0") is False
    assert _is_local_bind_host("192.168.1.10") is False
    assert _is_local_bind_host("") is False


def test_enforce_local_binding_rejects_external():
    """External bindings must be explicitly allowed."""
    with pytest.raises(SystemExit) as exc:
        _enforce_local_binding("0.0.0.0", False)
    assert exc.value.code == ExitCodes.CONFIG_ERROR.value


def test_enforce_local_binding_allows_with_flag():
    """External bindings are allowed only when flag is set."""
    _enforce_local_binding("0.0.0.0", True)


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = parse_args([])
        assert args.MODULES == []
        assert args.LIVERELOAD is None
        assert args.LOG_LEVEL == "INFO"
        assert args.CLEAR_CACHE is False

    def test_livereload_port(self):
        assert parse_args(["--livereload", "4000"]).LIVERELOAD == 4000

    def test_invalid_livereload_port(self):
        with pytest.raises(SystemExit):
            parse_args(["--livereload", "abc"])

    def test_bundler_choice_case_insensitive(self):
        assert parse_args(["--bundler", "ESBuild"]).BUNDLER == "esbuild"


class TestLoadConfig:
    """Tests for building the configuration from files and flags."""

    def test_discovers_config_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "bundlefree.yml").write_text("port: 4100\nmodules: [lit]\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        config = _load_config(parse_args(["-m", "three"]))
        assert config.port == 4100
        assert [m.name for m in config.modules] == ["lit", "three"]

    def test_explicit_config(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("bundler: esbuild\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert _load_config(parse_args(["-c", str(path)])).bundler == "esbuild"

    def test_invalid_config_exits(self, tmp_path, monkeypatch):
        (tmp_path / "bundlefree.yml").write_text("bundler: webpack\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit) as exc:
            _load_config(parse_args([]))
        assert exc.value.code == ExitCodes.CONFIG_ERROR.value


class TestClearCache:
    def test_removes_cache_dir(self, project):
        cache_dir = default_cache_dir(project / "node_modules")
        cache_dir.mkdir(parents=True)
        (cache_dir / "abc.js").write_text("export default 1;", encoding="utf-8")

        _clear_cache(DevServerConfig(path=str(project / "app")))

        assert not cache_dir.exists()

    def test_no_cache_dir(self, project, caplog):
        with caplog.at_level(logging.INFO):
            _clear_cache(DevServerConfig(path=str(project / "app")))
        assert "No cache directory" in caplog.text


class TestRunDevServer:
    """Tests for the serve entry point."""

    def test_clear_cache_does_not_start_server(self, project, monkeypatch):
        monkeypatch.chdir(project)
        with patch("devserver.server.run_server_sync") as run_server:
            run_dev_server(parse_args(["-d", "app", "--clear-cache"]))
        run_server.assert_not_called()

    def test_runs_server(self, project, monkeypatch):
        monkeypatch.chdir(project)
        with patch("devserver.server.run_server_sync") as run_server:
            run_dev_server(parse_args(["-d", "app", "-m", "lit"]))
        config = run_server.call_args[0][0]
        assert config.app_dir == (project / "app").resolve()
        assert [m.name for m in config.modules] == ["lit"]

    def test_broken_dependency_tree_exits(self, project, monkeypatch):
        monkeypatch.chdir(project)
        with patch("devserver.server.run_server_sync", side_effect=DescriptorLoadError("lit", "missing")):
            with pytest.raises(SystemExit) as exc:
                run_dev_server(parse_args(["-d", "app", "-m", "lit"]))
        assert exc.value.code == ExitCodes.DEPENDENCY_ERROR.value

    def test_external_host_requires_flag(self, project, monkeypatch):
        monkeypatch.chdir(project)
        with pytest.raises(SystemExit):
            run_dev_server(parse_args(["--host", "0.0.0.0"]))


def test_main_returns_success(monkeypatch):
    """main parses arguments and hands them to the serve command."""
    seen = []
    monkeypatch.setattr(bundlefree, "run_dev_server", seen.append)
    assert bundlefree.main(["-p", "8123"]) == ExitCodes.SUCCESS.value
    assert seen[0].PORT == 8123
