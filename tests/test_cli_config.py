"""Tests for settings loading and precedence."""

import argparse
import json

import pytest

from cli_config import Settings, apply_cli_overrides, load_settings
from constants import Constants
from errors import ConfigError


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in ("PACKSMITH_CONFIG", "PACKSMITH_CATALOG_DIR", "PACKSMITH_REGISTRY", "PACKSMITH_SCRIPT_TIMEOUT"):
        monkeypatch.delenv(key, raising=False)


class TestLoadSettings:
    def test_defaults_without_file(self):
        settings = load_settings(env={})
        assert settings == Settings()
        assert settings.docker_registry == Constants.DEFAULT_REGISTRY
        assert settings.script_timeout == float(Constants.DEFAULT_SCRIPT_TIMEOUT_SEC)

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(
            "docker_registry: registry.acme.io\n"
            "script_timeout: 0\n"
            "buildpacks:\n"
            "  nodejs:\n"
            "    default_version: '^4'\n",
            encoding="utf-8",
        )
        settings = load_settings(str(path), env={})
        assert settings.docker_registry == "registry.acme.io"
        assert settings.script_timeout is None
        assert settings.buildpacks == {"nodejs": {"default_version": "^4"}}

    def test_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"label_prefix": "io.acme"}), encoding="utf-8")
        assert load_settings(str(path), env={}).label_prefix == "io.acme"

    def test_default_location(self, tmp_path):
        home = tmp_path / "home" / ".packsmith"
        home.mkdir(parents=True)
        (home / "config.yml").write_text("catalog_dir: /opt/packs\n", encoding="utf-8")
        assert load_settings(env={}).catalog_dir == "/opt/packs"

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("docker_registry: from-file\n", encoding="utf-8")
        env = {"PACKSMITH_REGISTRY": "from-env", "PACKSMITH_SCRIPT_TIMEOUT": "12.5"}
        settings = load_settings(str(path), env=env)
        assert settings.docker_registry == "from-env"
        assert settings.script_timeout == 12.5

    def test_config_path_from_env(self, tmp_path):
        path = tmp_path / "alt.yml"
        path.write_text("artifacts_dir: /var/cache/packsmith\n", encoding="utf-8")
        assert load_settings(env={"PACKSMITH_CONFIG": str(path)}).artifacts_dir == "/var/cache/packsmith"

    def test_unknown_keys_are_ignored(self, tmp_path, caplog):
        path = tmp_path / "config.yml"
        path.write_text("colour: blue\n", encoding="utf-8")
        assert load_settings(str(path), env={}) == Settings()
        assert "colour" in caplog.text


class TestInvalidSettings:
    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="config file not found"):
            load_settings(str(tmp_path / "nope.yml"), env={})

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_settings(str(path), env={})

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("a: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="unable to parse"):
            load_settings(str(path), env={})

    @pytest.mark.parametrize("value", ["soon", "-1"])
    def test_bad_timeout(self, value):
        with pytest.raises(ConfigError):
            load_settings(env={"PACKSMITH_SCRIPT_TIMEOUT": value})

    def test_bad_buildpacks_section(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("buildpacks: [nodejs]\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="buildpacks"):
            load_settings(str(path), env={})


class TestCliOverrides:
    def test_flags_win(self):
        args = argparse.Namespace(CATALOG_DIR="/cli/packs", REGISTRY=None, SCRIPT_TIMEOUT="5")
        settings = apply_cli_overrides(Settings(docker_registry="keep"), args)
        assert settings.catalog_dir == "/cli/packs"
        assert settings.docker_registry == "keep"
        assert settings.script_timeout == 5.0

    def test_no_flags_returns_same(self):
        settings = Settings()
        args = argparse.Namespace(CATALOG_DIR=None, REGISTRY=None, SCRIPT_TIMEOUT=None)
        assert apply_cli_overrides(settings, args) is settings
