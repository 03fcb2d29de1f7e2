"""Tests for configuration loading, option decoding and world compilation."""

import pytest

from gdc.config import (
    ARCH_TAGS,
    OS_TAGS,
    AnalyzerOptions,
    ToolchainConfig,
    compile_worlds,
    decode_options,
    load_config,
    parse_world,
)
from gdc.errors import ConfigError
from gdc.models import HOST_WORLD, World


class TestDecodeOptions:
    def test_defaults(self):
        options = decode_options(None)
        assert options.strategy == "world-union"
        assert not options.allow_unresolved

    def test_hyphenated_keys(self):
        options = decode_options({
            "allow-unresolved-prefix": "github.com/a github.com/b",
            "allow-nested-vendor": True,
            "strategy": "manifest:dep",
        })
        assert options.unresolved_prefixes == ["github.com/a", "github.com/b"]
        assert options.allow_nested_vendor
        assert options.strategy_kind == "manifest"
        assert options.strategy_tool == "dep"

    def test_list_from_string(self):
        assert decode_options({"tags": "netgo osusergo"}).tags == ["netgo", "osusergo"]

    def test_unknown_keys_ignored(self):
        assert decode_options({"no-such-option": 1}) == AnalyzerOptions()

    @pytest.mark.parametrize("data", [
        {"allow-unresolved": "yes"},
        {"tags": [1, 2]},
        {"lockfile": 3},
    ])
    def test_wrong_type(self, data):
        with pytest.raises(ConfigError):
            decode_options(data)

    def test_unknown_strategy(self):
        with pytest.raises(ConfigError):
            decode_options({"strategy": "guess"})

    def test_tool_suffix_only_for_manifest(self):
        with pytest.raises(ConfigError):
            decode_options({"strategy": "import-trace:dep"})


class TestWorlds:
    def test_parse_world(self):
        assert parse_world("linux") == World(name="linux", goos="linux")
        assert parse_world("arm64") == World(name="arm64", goarch="arm64")
        assert parse_world("linux/arm64").env() == {"GOOS": "linux", "GOARCH": "arm64"}
        assert parse_world("appengine").tags == ("appengine",)
        assert parse_world("") == HOST_WORLD

    def test_host_is_last(self):
        worlds = compile_worlds(AnalyzerOptions(worlds=["windows", "darwin"]))
        assert [w.label for w in worlds] == ["windows", "darwin", "host"]
        assert worlds[-1].is_host

    def test_all_tags(self):
        worlds = compile_worlds(AnalyzerOptions(all_tags=True, worlds=["linux"]))
        assert len(worlds) == len(OS_TAGS) + len(ARCH_TAGS) + 1
        assert worlds[0].name == "linux"

    def test_tags_appended_everywhere(self):
        worlds = compile_worlds(AnalyzerOptions(worlds=["linux"], tags=["netgo"]))
        assert all(w.tags == ("netgo",) for w in worlds)
        assert worlds[-1].is_host


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config(module_dir=str(tmp_path))
        assert config.output.directory == str(tmp_path / "gdc_output")
        assert config.toolchain.max_workers == 4

    def test_yaml_file(self, tmp_path):
        (tmp_path / "gdc.yaml").write_text(
            "version: '2'\n"
            "options:\n"
            "  allow-unresolved: true\n"
            "  worlds: [linux, windows]\n"
            "toolchain:\n"
            "  max-workers: 2\n"
            "output:\n"
            "  directory: out\n"
            "  formats: [json]\n"
        )
        config = load_config(module_dir=str(tmp_path))
        assert config.version == "2"
        assert config.options.allow_unresolved
        assert config.options.worlds == ["linux", "windows"]
        assert config.toolchain.max_workers == 2
        assert config.output.directory == str(tmp_path / "out")
        assert config.output.formats == ["json"]

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(config_path=str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / ".gdc.yaml").write_text("options: [\n")
        with pytest.raises(ConfigError):
            load_config(module_dir=str(tmp_path))

    def test_go_command_from_environment(self, monkeypatch):
        monkeypatch.setenv("GDC_GO_CMD", "/opt/go/bin/go")
        assert ToolchainConfig().resolve_command() == "/opt/go/bin/go"
        assert ToolchainConfig(command="go1.21").resolve_command() == "go1.21"
