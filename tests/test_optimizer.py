"""
Tests for production optimization and output cleanup.
"""

import re

import pytest

from twinforge.core.configurator import derive
from twinforge.core.naming import content_digest
from twinforge.core.optimizer import (
    CleanupOrderError,
    Optimizer,
    dedupe_rules,
    minify_script,
    minify_style,
    should_optimize,
    split_rules,
)
from twinforge.domain.models import (
    AssetClass,
    BaseConfiguration,
    BuildMode,
    BuildTarget,
    TransformResult,
)


@pytest.fixture
def base(tmp_path):
    return BaseConfiguration(project_root=tmp_path)


def result(path, content, asset_class, name="original"):
    return TransformResult(path, asset_class, content, name)


class TestMinifiers:
    def test_minify_script(self):
        out = minify_script(b"// comment\nvar  answer = 42 ;\n\n\nconsole.log( answer );\n")
        assert b"comment" not in out
        assert len(out) < 60
        assert minify_script(out) == out

    def test_minify_style(self):
        out = minify_style(b"/* c */\n.a {\n  color: red;\n}\n")
        assert out == b".a{color:red}"

    def test_split_rules(self):
        css = '@import "x.css";.a{color:red}@media (x){.b{c:d}}.c{content:"}"}'
        assert split_rules(css) == [
            '@import "x.css";',
            ".a{color:red}",
            "@media (x){.b{c:d}}",
            '.c{content:"}"}',
        ]

    def test_dedupe_keeps_last(self):
        assert dedupe_rules(".a{x:1}.b{y:2}.a{x:1}") == ".b{y:2}.a{x:1}"

    def test_duplicates_collapsed_after_minify(self):
        out = minify_style(b".a { x: 1; }\n.a{x:1}\n")
        assert out == b".a{x:1}"


class TestOptimize:
    """Tests for Optimizer.optimize."""

    def test_only_production_browser(self, base):
        assert should_optimize(derive(base, BuildTarget.BROWSER, BuildMode.PRODUCTION))
        assert not should_optimize(derive(base, BuildTarget.BROWSER, BuildMode.DEVELOPMENT))
        assert not should_optimize(derive(base, BuildTarget.SERVER, BuildMode.PRODUCTION))

    def test_development_unchanged(self, base):
        config = derive(base, BuildTarget.BROWSER, BuildMode.DEVELOPMENT)
        results = [result("app.js", b"var  a = 1 ;", AssetClass.SCRIPT)]
        assert Optimizer().optimize(config, results) is results

    def test_renamed_after_minify(self, base):
        config = derive(base, BuildTarget.BROWSER, BuildMode.PRODUCTION)
        results = [
            result("app.js", b"var  a = 1 ;\n", AssetClass.SCRIPT),
            result("theme.scss", b".a {\n  x: 1;\n}\n", AssetClass.STYLESHEET),
            result("logo.png", b"\x89PNG", AssetClass.RASTER_IMAGE, name="keep.png"),
        ]

        optimized = Optimizer().optimize(config, results)

        script, sheet, image = optimized
        assert script.final_name == content_digest(script.output) + ".js"
        assert sheet.final_name == content_digest(sheet.output) + ".css"
        assert re.fullmatch(r"[0-9a-f]{20}\.css", sheet.final_name)
        assert image is results[2]
        assert results[0].output == b"var  a = 1 ;\n"


class TestClean:
    """Tests for Optimizer.clean."""

    def test_removes_everything_but_manifest(self, tmp_path):
        out = tmp_path / "dist"
        (out / "img").mkdir(parents=True)
        (out / "old.js").write_text("x")
        (out / "img" / "old.png").write_bytes(b"x")
        manifest = out / "manifest.json"
        manifest.write_text("{}")

        removed = Optimizer().clean(out, manifest)

        assert removed == 2
        assert sorted(p.name for p in out.iterdir()) == ["manifest.json"]

    def test_missing_directory(self, tmp_path):
        assert Optimizer().clean(tmp_path / "missing", tmp_path / "manifest.json") == 0

    def test_refuses_after_emission(self, tmp_path):
        out = tmp_path / "dist"
        out.mkdir()
        (out / "new.js").write_text("x")

        with pytest.raises(CleanupOrderError):
            Optimizer().clean(out, out / "manifest.json", emission_started=True)
        assert (out / "new.js").exists()
