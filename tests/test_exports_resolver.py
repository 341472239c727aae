"""Tests for npm-style export resolution."""

import pytest

from resolution.descriptor import Descriptor, ModuleType, parse_exports
from resolution.exports import normalize_sub_path, pattern_to_regex, resolve_export, strip_relative


def make(exports=None, name="pkg", **kwargs):
    """Build a descriptor with an optional raw exports value."""
    parsed = parse_exports(exports) if exports is not None else None
    return Descriptor(name=name, exports=parsed, **kwargs)


class TestNormalizeSubPath:
    """Tests for sub-path normalization."""

    @pytest.mark.parametrize("value", [None, "", "/", "."])
    def test_root_forms(self, value):
        """Empty, slash-only and absent sub-paths mean the root."""
        assert normalize_sub_path(value) == "."

    def test_leading_slash(self):
        """URL style sub-paths become exports keys."""
        assert normalize_sub_path("/feature/x") == "./feature/x"

    def test_bare_relative(self):
        """Sub-paths without a prefix get ./ added."""
        assert normalize_sub_path("lib/a.js") == "./lib/a.js"

    def test_already_normalized(self):
        """./ prefixed sub-paths are unchanged."""
        assert normalize_sub_path("./lib/a.js") == "./lib/a.js"


class TestPatternToRegex:
    """Tests for exports key patterns."""

    def test_metacharacters_escaped(self):
        """Dots and other metacharacters match literally."""
        rx = pattern_to_regex("./a.b+c")
        assert rx.match("./a.b+c")
        assert not rx.match("./aXb+c")

    def test_wildcard_captures(self):
        """A star captures the rest of the path."""
        m = pattern_to_regex("./feature/*").match("./feature/deep/x")
        assert m.group(1) == "deep/x"

    def test_anchored(self):
        """Patterns must match the whole sub-path."""
        assert not pattern_to_regex("./feature").match("./feature/x")


class TestExportsMap:
    """Tests for resolution through an exports map."""

    def test_conditions_per_root(self):
        """import and require pick their own targets."""
        pkg = make({".": {"import": "./esm/index.js", "require": "./cjs/index.js"}})
        assert resolve_export(pkg, ".", ["import"]) == "./esm/index.js"
        assert resolve_export(pkg, ".", ["require"]) == "./cjs/index.js"

    def test_wildcard_pattern(self):
        """A wildcard pattern substitutes the captured segment."""
        pkg = make({"./feature/*": "./src/*.js"})
        assert resolve_export(pkg, "./feature/x", ["import"]) == "./src/x.js"
        assert resolve_export(pkg, "./other", ["import"]) is None

    def test_string_exports_only_root(self):
        """A plain string export serves the root and nothing else."""
        pkg = make("./index.js")
        assert resolve_export(pkg, ".", ["import"]) == "./index.js"
        assert resolve_export(pkg, None, ["import"]) == "./index.js"
        assert resolve_export(pkg, "./other.js", ["import"]) is None

    def test_pattern_before_condition(self):
        """A matching pattern wins over a matching condition at the same level."""
        pkg = make({"import": "./cond.js", ".": "./pattern.js"})
        assert resolve_export(pkg, ".", ["import"]) == "./pattern.js"

    def test_condition_before_default(self):
        """Requested conditions are tried before default."""
        pkg = make({".": {"default": "./default.js", "import": "./import.js"}})
        assert resolve_export(pkg, ".", ["import"]) == "./import.js"
        assert resolve_export(pkg, ".", ["browser"]) == "./default.js"

    def test_condition_order_is_callers(self):
        """The caller's condition order decides, not declaration order."""
        pkg = make({".": {"require": "./cjs.js", "import": "./esm.js"}})
        assert resolve_export(pkg, ".", ["import", "require"]) == "./esm.js"
        assert resolve_export(pkg, ".", ["require", "import"]) == "./cjs.js"

    def test_nested_conditions(self):
        """Conditions recurse until a string is reached."""
        pkg = make({
            ".": {
                "browser": {"import": "./browser.mjs", "default": "./browser.js"},
                "default": "./node.js",
            }
        })
        assert resolve_export(pkg, ".", ["browser", "import"]) == "./browser.mjs"
        assert resolve_export(pkg, ".", ["browser"]) == "./browser.js"
        assert resolve_export(pkg, ".", ["node"]) == "./node.js"

    def test_failed_condition_falls_through(self):
        """A condition whose subtree misses lets the next one try."""
        pkg = make({".": {"import": {"types": "./x.d.ts"}, "require": "./x.cjs"}})
        assert resolve_export(pkg, ".", ["import", "require"]) == "./x.cjs"

    def test_top_level_conditions_sugar(self):
        """Condition keys at the top level apply to the root."""
        pkg = make({"import": "./esm.js", "require": "./cjs.js"})
        assert resolve_export(pkg, ".", ["require"]) == "./cjs.js"
        assert resolve_export(pkg, "./sub", ["require"]) is None

    def test_wildcard_capture_survives_conditions(self):
        """A capture bound by a pattern is used by literals below conditions."""
        pkg = make({"./lib/*": {"import": "./esm/*.mjs", "require": "./cjs/*.cjs"}})
        assert resolve_export(pkg, "/lib/a", ["import"]) == "./esm/a.mjs"
        assert resolve_export(pkg, "lib/a", ["require"]) == "./cjs/a.cjs"

    def test_exact_subpath_pattern(self):
        """Non-wildcard sub-path keys map exactly."""
        pkg = make({".": "./index.js", "./package.json": "./package.json"})
        assert resolve_export(pkg, "./package.json", ["import"]) == "./package.json"

    def test_first_pattern_match_is_final(self):
        """The first matching pattern decides even when its subtree misses."""
        pkg = make({"./*": {"require": "./cjs/*.js"}, "./a": "./a.js"})
        assert resolve_export(pkg, "./a", ["import"]) is None

    def test_null_target_blocks(self):
        """A null target excludes a sub-path."""
        pkg = make({"./*": "./*.js", "./internal/*": None})
        assert resolve_export(pkg, "./x", ["import"]) == "./x.js"
        pkg = make({"./internal/*": None, "./*": "./*.js"})
        assert resolve_export(pkg, "./internal/y", ["import"]) is None

    def test_fallback_array(self):
        """Array targets resolve to the first usable option."""
        pkg = make({".": [{"worker": "./worker.js"}, "./index.js"]})
        assert resolve_export(pkg, ".", ["import"]) == "./index.js"

    def test_no_match_returns_none(self):
        """Nothing matching is a miss, not an error."""
        pkg = make({".": {"node": "./node.js"}})
        assert resolve_export(pkg, ".", ["import"]) is None

    def test_deterministic(self):
        """Repeated resolution yields identical results."""
        pkg = make({".": {"import": "./a.js"}, "./b": {"default": "./b.js"}})
        first = [resolve_export(pkg, p, ["import"]) for p in (".", "./b", "./c")]
        second = [resolve_export(pkg, p, ["import"]) for p in (".", "./b", "./c")]
        assert first == second == ["./a.js", "./b.js", None]


class TestLegacyRoot:
    """Tests for packages without an exports map, root sub-path."""

    def test_import_prefers_module_field(self):
        """The module field is the ES entry."""
        pkg = make(main="index.js", module="index.esm.js")
        assert resolve_export(pkg, ".", ["import"]) == "index.esm.js"

    def test_import_accepts_mjs_main(self):
        """An .mjs main is ES regardless of type."""
        pkg = make(main="index.mjs")
        assert resolve_export(pkg, ".", ["import"]) == "index.mjs"

    def test_import_accepts_main_of_es_package(self):
        """A .js main counts as ES when the package is type module."""
        pkg = make(main="index.js", module_type=ModuleType.MODULE)
        assert resolve_export(pkg, ".", ["import"]) == "index.js"

    def test_import_rejects_commonjs_main(self):
        """A plain CommonJS package has no import entry."""
        pkg = make(main="lib/index.js")
        assert resolve_export(pkg, ".", ["import"]) is None

    def test_require_uses_main(self):
        """require resolves main for CommonJS packages."""
        pkg = make(main="lib/index.js")
        assert resolve_export(pkg, ".", ["require"]) == "lib/index.js"

    def test_require_accepts_cjs_main_in_es_package(self):
        """A .cjs main is legacy even in an ES package."""
        pkg = make(main="index.cjs", module_type=ModuleType.MODULE)
        assert resolve_export(pkg, ".", ["require"]) == "index.cjs"

    def test_require_default_file(self):
        """CommonJS packages without main fall back to index.js."""
        assert resolve_export(make(), ".", ["require"]) == "index.js"
        explicit = make(module_type=ModuleType.COMMONJS)
        assert resolve_export(explicit, ".", ["require"]) == "index.js"

    def test_require_none_for_es_package(self):
        """ES packages have no legacy default entry."""
        pkg = make(main="index.js", module_type=ModuleType.MODULE)
        assert resolve_export(pkg, ".", ["require"]) is None

    def test_no_entry_point(self):
        """Unknown conditions on the root resolve to nothing."""
        assert resolve_export(make(main="index.js"), ".", ["browser"]) is None


class TestLegacySubPath:
    """Tests for packages without an exports map, non-root sub-paths."""

    def test_import_mjs_passes(self):
        """.mjs files are importable from any package."""
        assert resolve_export(make(), "/lib/a.mjs", ["import"]) == "./lib/a.mjs"

    def test_import_es_package_passes(self):
        """Any file of an ES package is importable."""
        pkg = make(module_type=ModuleType.MODULE)
        assert resolve_export(pkg, "/lib/a.js", ["import"]) == "./lib/a.js"

    def test_import_commonjs_file_misses(self):
        """A CommonJS file is not an import target."""
        assert resolve_export(make(), "/lib/a.js", ["import"]) is None

    def test_require_mirror(self):
        """require accepts legacy files and rejects ES package files."""
        assert resolve_export(make(), "/lib/a.js", ["require"]) == "./lib/a.js"
        es_pkg = make(module_type=ModuleType.MODULE)
        assert resolve_export(es_pkg, "/lib/a.js", ["require"]) is None
        assert resolve_export(es_pkg, "/lib/a.cjs", ["require"]) == "./lib/a.cjs"

    def test_other_conditions_pass_through(self):
        """Conditions unrelated to module format return the path unchanged."""
        assert resolve_export(make(), "/lib/a.js", ["browser"]) == "./lib/a.js"


class TestStripRelative:
    """Tests for URL-ready paths."""

    def test_strip(self):
        assert strip_relative("./dist/a.js") == "dist/a.js"
        assert strip_relative("dist/a.js") == "dist/a.js"
        assert strip_relative("/dist/a.js") == "dist/a.js"
