"""
Tests for configuration loading and per-target derivation.
"""

import json

import pytest

from twinforge.core.configurator import (
    MODE_DEFINE,
    derive,
    load_base,
    targets_for,
)
from twinforge.domain.errors import ConfigurationError
from twinforge.domain.models import (
    AssetClass,
    BaseConfiguration,
    BuildMode,
    BuildTarget,
    ExternalizationPolicy,
    NamingStrategy,
    StageDescriptor,
    StageKind,
)


@pytest.fixture
def base(tmp_path):
    return BaseConfiguration(
        project_root=tmp_path,
        revision="abc123",
        aliases={"utils": "./lib/utils"},
        development_aliases={"react-dom": "@hot-loader/react-dom"},
    )


def kinds(config, asset_class):
    return [stage.kind for stage in config.chains[asset_class]]


# =============================================================================
# LOADING
# =============================================================================


class TestLoadBase:
    """Tests for load_base."""

    def test_missing_file_uses_defaults(self, tmp_path):
        base = load_base(tmp_path / "twinforge.yaml")
        assert base.entry == "main.jsx"
        assert base.project_root == tmp_path.resolve()

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "twinforge.yaml"
        path.write_text(
            "source_root: web\n"
            "entry: index.jsx\n"
            "aliases:\n"
            "  utils: ./lib/utils\n"
            "server:\n"
            "  entry: Root.jsx\n"
            "images:\n"
            "  jpeg_quality: 80\n"
        )

        base = load_base(path)
        assert base.source_root == "web"
        assert base.entry == "index.jsx"
        assert base.aliases == {"utils": "./lib/utils"}
        assert base.server.entry == "Root.jsx"
        assert base.server.entry_filename == "App.js"
        assert base.images.jpeg_quality == 80

    def test_default_path_is_cwd_at_call_time(self, tmp_path, monkeypatch):
        (tmp_path / "twinforge.yaml").write_text("entry: boot.jsx\n")
        monkeypatch.chdir(tmp_path)

        base = load_base()

        assert base.entry == "boot.jsx"
        assert base.project_root == tmp_path.resolve()

    def test_overrides_win(self, tmp_path):
        base = load_base(tmp_path / "twinforge.yaml", revision="deadbeef")
        assert base.revision == "deadbeef"

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "twinforge.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_base(path)

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / "twinforge.yaml"
        path.write_text("images:\n  jpeg_quality: 500\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_base(path)
        assert exc_info.value.stage == "configure"


class TestTargetsFor:
    def test_development_browser_only(self):
        assert targets_for(BuildMode.DEVELOPMENT) == [BuildTarget.BROWSER]

    def test_production_both(self):
        assert targets_for(BuildMode.PRODUCTION) == [BuildTarget.BROWSER, BuildTarget.SERVER]


# =============================================================================
# DERIVATION
# =============================================================================


class TestDeriveBrowser:
    """Browser target rules."""

    def test_production(self, base):
        config = derive(base, BuildTarget.BROWSER, BuildMode.PRODUCTION)

        assert config.output.naming == NamingStrategy.CONTENT_HASH
        assert config.optimization_enabled is True
        assert config.externalization == ExternalizationPolicy.NONE
        assert config.entry_point == "main.jsx"
        assert set(config.eligible_classes) == set(AssetClass)
        assert StageKind.LIVE_RELOAD not in kinds(config, AssetClass.SCRIPT)
        assert "react-dom" not in config.module_aliases

    def test_development(self, base):
        config = derive(base, BuildTarget.BROWSER, BuildMode.DEVELOPMENT)

        assert config.output.naming == NamingStrategy.STABLE
        assert config.optimization_enabled is False
        assert config.module_aliases["react-dom"] == "@hot-loader/react-dom"
        assert kinds(config, AssetClass.SCRIPT) == [
            StageKind.ALIAS,
            StageKind.DEFINE,
            StageKind.COMPILE,
            StageKind.LIVE_RELOAD,
            StageKind.FINGERPRINT,
        ]

    def test_defines(self, base):
        config = derive(base, BuildTarget.BROWSER, BuildMode.PRODUCTION)
        assert config.defines["WEBPACK.GIT_REVISION"] == json.dumps("abc123")
        assert config.defines[MODE_DEFINE] == '"production"'

    def test_revision_define_is_configurable(self, tmp_path):
        base = BaseConfiguration(
            project_root=tmp_path, revision="abc123", revision_define="APP.REVISION"
        )
        config = derive(base, BuildTarget.BROWSER, BuildMode.PRODUCTION)
        assert config.defines["APP.REVISION"] == '"abc123"'
        assert "WEBPACK.GIT_REVISION" not in config.defines

    def test_all_chains_wired(self, base):
        config = derive(base, BuildTarget.BROWSER, BuildMode.PRODUCTION)
        assert kinds(config, AssetClass.STYLESHEET) == [StageKind.EXTRACT_STYLE, StageKind.FINGERPRINT]
        assert kinds(config, AssetClass.RASTER_IMAGE) == [StageKind.RECOMPRESS, StageKind.FINGERPRINT]
        assert kinds(config, AssetClass.FONT_OR_MEDIA) == [StageKind.PASSTHROUGH, StageKind.FINGERPRINT]
        assert config.chains[AssetClass.RASTER_IMAGE][0].options["jpeg_quality"] == 95


class TestDeriveServer:
    """Server target rules."""

    def test_server(self, base, tmp_path):
        config = derive(base, BuildTarget.SERVER, BuildMode.PRODUCTION)

        assert config.entry_point == "components/App.jsx"
        assert config.output.naming == NamingStrategy.FIXED
        assert config.output.entry_filename == "App.js"
        assert config.output.path == tmp_path / "http" / "dist"
        assert config.output.module_format == "commonjs2"
        assert config.externalization == ExternalizationPolicy.RUNTIME_DEPENDENCIES
        assert config.optimization_enabled is False
        assert config.eligible_classes == [AssetClass.SCRIPT]
        assert list(config.chains) == [AssetClass.SCRIPT]
        assert StageKind.LIVE_RELOAD not in kinds(config, AssetClass.SCRIPT)

    def test_stylesheet_chain_override_rejected(self, base):
        overrides = {
            "chains": {
                AssetClass.SCRIPT: [StageDescriptor(kind=StageKind.FINGERPRINT)],
                AssetClass.STYLESHEET: [StageDescriptor(kind=StageKind.EXTRACT_STYLE)],
            }
        }
        with pytest.raises(ConfigurationError):
            derive(base, BuildTarget.SERVER, BuildMode.PRODUCTION, overrides)

    def test_media_eligibility_override_rejected(self, base):
        with pytest.raises(ConfigurationError):
            derive(
                base,
                BuildTarget.SERVER,
                BuildMode.PRODUCTION,
                {"eligible_classes": [AssetClass.SCRIPT, AssetClass.RASTER_IMAGE]},
            )


class TestIsolation:
    """Derived configurations share no mutable state."""

    def test_base_not_mutated(self, base):
        before = base.model_dump()
        derive(base, BuildTarget.BROWSER, BuildMode.DEVELOPMENT)
        derive(base, BuildTarget.SERVER, BuildMode.PRODUCTION)
        assert base.model_dump() == before

    def test_targets_independent(self, base):
        browser = derive(base, BuildTarget.BROWSER, BuildMode.PRODUCTION)
        server = derive(base, BuildTarget.SERVER, BuildMode.PRODUCTION)

        browser.module_aliases["utils"] = "./elsewhere"
        browser.defines["EXTRA"] = "1"
        browser.class_patterns[AssetClass.SCRIPT].append("*.ts")
        browser.chains[AssetClass.SCRIPT].clear()

        assert server.module_aliases["utils"] == "./lib/utils"
        assert "EXTRA" not in server.defines
        assert "*.ts" not in server.class_patterns[AssetClass.SCRIPT]
        assert len(server.chains[AssetClass.SCRIPT]) == 4
        assert base.aliases["utils"] == "./lib/utils"
        assert "*.ts" not in base.classes[AssetClass.SCRIPT]

    def test_overrides_copied(self, base):
        include = ["**/*.js"]
        config = derive(base, BuildTarget.SERVER, BuildMode.PRODUCTION, {"include": include})
        include.append("**/*.scss")
        assert config.include == ["**/*.js"]
