"""
Tests for configuration loading, validation and overrides.
"""

import pytest
import yaml

from logvec.config import (
    DEFAULT_SEED,
    AnalysisConfig,
    EmbedderConfig,
    ParserConfig,
    TokenizerConfig,
    apply_environment_overrides,
    load_config,
    load_config_file,
    save_config,
)
from logvec.errors import ConfigError


class TestDefaults:
    """Test default configuration values."""

    def test_defaults(self):
        config = AnalysisConfig()

        assert config.group_field == "SYSLOG_IDENTIFIER"
        assert config.missing_group_key is None
        assert config.tokenizer.message_field == "MESSAGE"
        assert config.tokenizer.lowercase is True
        assert config.embedder.dimension == 128
        assert config.embedder.k == 1
        assert config.embedder.seed == DEFAULT_SEED
        assert config.parser.on_error == "raise"
        assert config.parser.max_field_name_len == 128


class TestValidation:
    """Test that invalid values are rejected on construction."""

    @pytest.mark.parametrize("factory", [
        lambda: ParserConfig(max_field_value_size=0),
        lambda: ParserConfig(on_error="ignore"),
        lambda: TokenizerConfig(message_field=""),
        lambda: TokenizerConfig(min_token_length=0),
        lambda: TokenizerConfig(unicode_normalization="NFX"),
        lambda: EmbedderConfig(seed=-1),
        lambda: AnalysisConfig(group_field=""),
        lambda: AnalysisConfig(max_workers=0),
        lambda: AnalysisConfig(top_entries=0),
    ])
    def test_invalid(self, factory):
        with pytest.raises(ConfigError):
            factory()

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError) as exc_info:
            EmbedderConfig(k=0)
        assert exc_info.value.option == "k"


class TestSerialization:
    """Test dictionary and YAML round trips."""

    def test_dict_round_trip(self):
        config = AnalysisConfig(
            tokenizer=TokenizerConfig(stop_tokens=frozenset({"the", "a"}), min_token_length=2),
            embedder=EmbedderConfig(dimension=512, k=3, seed=7),
            missing_group_key="(none)",
        )
        assert AnalysisConfig.from_dict(config.to_dict()) == config

    def test_unknown_keys_ignored(self):
        config = AnalysisConfig.from_dict({"embedder": {"dimension": 64, "colour": "red"}, "extra": 1})
        assert config.embedder.dimension == 64

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigError):
            AnalysisConfig.from_dict({"parser": [1, 2]})

    def test_yaml_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "logvec.yml"
        config = AnalysisConfig(group_field="_SYSTEMD_UNIT", tokenizer=TokenizerConfig(stop_tokens={"info"}))

        save_config(config, path)

        assert load_config_file(path) == config
        assert yaml.safe_load(path.read_text())["group_field"] == "_SYSTEMD_UNIT"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config_file(path) == AnalysisConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(tmp_path / "absent.yml")


class TestLoadConfig:
    """Test config file lookup and environment overrides."""

    def test_environment_overrides(self):
        config = apply_environment_overrides(AnalysisConfig(), {
            "LOGVEC_DIMENSION": "256",
            "LOGVEC_SEED": "0x10",
            "LOGVEC_GROUP_FIELD": "_COMM",
            "LOGVEC_ON_ERROR": "skip",
        })

        assert config.embedder.dimension == 256
        assert config.embedder.seed == 16
        assert config.group_field == "_COMM"
        assert config.parser.on_error == "skip"

    def test_no_overrides_returns_same_object(self):
        config = AnalysisConfig()
        assert apply_environment_overrides(config, {}) is config

    def test_invalid_override(self):
        with pytest.raises(ConfigError):
            apply_environment_overrides(AnalysisConfig(), {"LOGVEC_DIMENSION": "lots"})

    def test_explicit_path_then_environment(self, tmp_path):
        path = tmp_path / "custom.yml"
        save_config(AnalysisConfig(embedder=EmbedderConfig(dimension=64)), path)

        config = load_config(path, environ={"LOGVEC_K": "2"})

        assert config.embedder.dimension == 64
        assert config.embedder.k == 2

    def test_config_env_var(self, tmp_path):
        path = tmp_path / "from-env.yml"
        save_config(AnalysisConfig(top_entries=3), path)

        assert load_config(environ={"LOGVEC_CONFIG": str(path)}).top_entries == 3

    def test_local_file_then_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))

        assert load_config(environ={}) == AnalysisConfig()

        save_config(AnalysisConfig(top_entries=4), tmp_path / ".logvec.yml")
        assert load_config(environ={}).top_entries == 4
