"""Tests for source settings and confwatch.yaml loading."""

from __future__ import annotations

import pytest
import yaml

from confwatch.core.errors import ConfigurationError
from confwatch.core.settings import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_ROOT_PATH,
    DEFAULT_SESSION_TIMEOUT,
    SettingsLoader,
    SourceSettings,
)


class TestSourceSettings:
    """Test suite for SourceSettings."""

    def test_defaults(self):
        settings = SourceSettings()
        assert settings.address is None
        assert settings.root_path == DEFAULT_ROOT_PATH == "/dubbo"
        assert settings.session_timeout == DEFAULT_SESSION_TIMEOUT
        assert settings.connect_timeout == DEFAULT_CONNECT_TIMEOUT
        assert settings.strict is False

    def test_missing_address_is_fatal(self):
        with pytest.raises(ConfigurationError, match="address"):
            SourceSettings().validate()
        with pytest.raises(ConfigurationError):
            SourceSettings(address="  ").validate()

    def test_non_positive_timeout_is_fatal(self):
        with pytest.raises(ConfigurationError):
            SourceSettings(address="zk:2181", connect_timeout=0).validate()

    def test_from_mapping_field_names(self):
        settings = SourceSettings.from_mapping(
            {
                "address": "zk:2181",
                "root_path": "app",
                "strict": "true",
                "session_timeout": "30",
                "connect_timeout": 2,
                "notify_depth": "6",
                "relative_depth": True,
                "snapshot_timeout": 1.5,
            }
        )
        assert settings == SourceSettings(
            address="zk:2181",
            session_timeout=30.0,
            connect_timeout=2.0,
            root_path="app",
            strict=True,
            notify_depth=6,
            relative_depth=True,
            snapshot_timeout=1.5,
        )

    def test_from_mapping_property_aliases(self):
        settings = SourceSettings.from_mapping(
            {
                "archaius.zk.address": "zk:2181",
                "archaius.zk.rootpath": "/custom",
                "archaius.zk.check": "false",
            }
        )
        assert settings.address == "zk:2181"
        assert settings.root_path == "/custom"
        assert settings.strict is False

    def test_field_names_take_precedence_over_aliases(self):
        settings = SourceSettings.from_mapping(
            {"address": "a:1", "archaius.zk.address": "b:2"}
        )
        assert settings.address == "a:1"

    def test_invalid_number(self):
        with pytest.raises(ConfigurationError):
            SourceSettings.from_mapping({"connect_timeout": "soon"})

    def test_empty_mapping(self):
        assert SourceSettings.from_mapping(None) == SourceSettings()


class TestSettingsLoader:
    """Test suite for SettingsLoader."""

    def test_explicit_path(self, tmp_path):
        config_file = tmp_path / "confwatch.yaml"
        config_file.write_text("zookeeper: {address: 'zk:2181'}")
        loader = SettingsLoader(config_file)
        assert loader.config_path == config_file
        assert loader.get_source_settings().address == "zk:2181"

    def test_nonexistent_explicit_path(self, tmp_path):
        loader = SettingsLoader(tmp_path / "missing.yaml")
        assert loader.config_path is None
        assert loader.load() == {}

    def test_find_config_in_parent_dir(self, tmp_path, monkeypatch):
        config_file = tmp_path / "confwatch.yaml"
        config_file.write_text("zookeeper: {}")
        subdir = tmp_path / "subdir"
        subdir.mkdir()
        monkeypatch.chdir(subdir)
        assert SettingsLoader().config_path == config_file

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "confwatch.yaml"
        config_file.write_text("zookeeper: [unclosed")
        with pytest.raises(ConfigurationError, match="Invalid confwatch.yaml"):
            SettingsLoader(config_file).load()

    def test_top_level_must_be_mapping(self, tmp_path):
        config_file = tmp_path / "confwatch.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            SettingsLoader(config_file).load()

    def test_overrides_win_over_file(self, tmp_path):
        config_file = tmp_path / "confwatch.yaml"
        config_file.write_text(yaml.dump({"zookeeper": {"address": "zk:2181", "root_path": "app"}}))
        settings = SettingsLoader(config_file).get_source_settings(address="other:2181", root_path=None)
        assert settings.address == "other:2181"
        assert settings.root_path == "app"

    def test_namespaces(self, tmp_path):
        config_file = tmp_path / "confwatch.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "namespaces": [
                        {"name": "app", "uri": "redis://localhost:6379/0", "prefix": "app:"},
                        {"name": "defaults", "values": {"k": "v"}},
                    ]
                }
            )
        )
        namespaces = SettingsLoader(config_file).get_namespaces()
        assert [n["name"] for n in namespaces] == ["app", "defaults"]

    @pytest.mark.parametrize(
        "entry", [{"uri": "redis://x"}, {"name": "app"}, "app"]
    )
    def test_invalid_namespace(self, tmp_path, entry):
        config_file = tmp_path / "confwatch.yaml"
        config_file.write_text(yaml.dump({"namespaces": [entry]}))
        with pytest.raises(ConfigurationError):
            SettingsLoader(config_file).get_namespaces()
