"""Tests for memosync.config: TOML persistence, env overrides, validation."""

import pytest

from memosync.config import (
    CONFIG_FILENAME,
    ProviderConfig,
    SyncConfig,
    load_config,
    load_or_create_config,
    save_config,
)
from memosync.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("MEMOS_API_URL", raising=False)
    monkeypatch.delenv("MEMOS_ACCESS_TOKEN", raising=False)


class TestLoadSave:
    def test_missing_config_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_create_writes_defaults(self, tmp_path):
        config = load_or_create_config(tmp_path)

        assert (tmp_path / CONFIG_FILENAME).exists()
        assert config.sync_limit == 1000
        assert config.directory == "memos"
        assert config.ai.enabled is False
        assert config.ai.provider == "openai"

    def test_roundtrip(self, tmp_path):
        config = SyncConfig(
            path=tmp_path,
            api_url="https://memos.example.com/api/v1",
            access_token="abc",
            sync_limit=250,
            directory="Notes/Memos",
            frequency="auto",
            interval_minutes=15,
        )
        config.ai.enabled = True
        config.ai.provider = "ollama"
        config.ai.summary_language = "en"
        config.ai.providers["ollama"].params["model"] = "qwen2"
        save_config(config)

        loaded = load_config(tmp_path)

        assert loaded.api_url == "https://memos.example.com/api/v1"
        assert loaded.access_token == "abc"
        assert loaded.sync_limit == 250
        assert loaded.sync_root == "Notes/Memos"
        assert loaded.frequency == "auto"
        assert loaded.interval_minutes == 15
        assert loaded.ai.enabled
        assert loaded.ai.summary_language == "en"
        assert loaded.ai.provider_config.params["model"] == "qwen2"

    def test_partial_file_gets_defaults(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text(
            '[memos]\napi_url = "https://m.example.com/api/v1/"\n'
            '[ai.openai]\nmodel = "gpt-4o-mini"\n',
            encoding="utf-8",
        )

        config = load_config(tmp_path)

        assert config.api_url == "https://m.example.com/api/v1"
        assert config.sync_limit == 1000
        assert config.ai.providers["openai"].params["model"] == "gpt-4o-mini"
        assert config.ai.providers["openai"].params["base_url"] == "https://api.openai.com/v1"
        assert config.ai.providers["ollama"].params["model"] == "llama2"

    def test_bad_number_is_value_error(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text(
            '[memos]\nsync_limit = "lots"\n', encoding="utf-8"
        )

        with pytest.raises(ValueError, match="Invalid config"):
            load_config(tmp_path)

    def test_newer_version_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[store]\nversion = 99\n", encoding="utf-8")

        with pytest.raises(ValueError, match="newer"):
            load_config(tmp_path)

    def test_env_overrides_credentials(self, tmp_path, monkeypatch):
        load_or_create_config(tmp_path)
        monkeypatch.setenv("MEMOS_API_URL", "https://env.example.com/api/v1")
        monkeypatch.setenv("MEMOS_ACCESS_TOKEN", "env-token")

        config = load_config(tmp_path)

        assert config.api_url == "https://env.example.com/api/v1"
        assert config.access_token == "env-token"


class TestValidate:
    def test_valid(self, config):
        config.validate()

    @pytest.mark.parametrize("field,value,message", [
        ("api_url", "", "URL"),
        ("access_token", "", "token"),
        ("api_url", "https://memos.example.com", "/api/v1"),
        ("sync_limit", 0, "sync_limit"),
        ("frequency", "hourly", "frequency"),
    ])
    def test_invalid(self, config, field, value, message):
        setattr(config, field, value)
        with pytest.raises(ConfigurationError, match=message):
            config.validate()

    def test_unknown_language(self, config):
        config.ai.summary_language = "fr"
        with pytest.raises(ConfigurationError, match="summary_language"):
            config.validate()

    def test_sync_root_normalized(self, config):
        config.directory = "\\Vault\\memos\\"
        assert config.sync_root == "Vault/memos"
        config.directory = "/"
        assert config.sync_root == "memos"


class TestProviderConfig:
    def test_empty_values_dropped(self):
        provider = ProviderConfig("openai", {"model": "gpt-4o", "api_key": "", "base_url": ""})
        assert provider.backend_params() == {"model": "gpt-4o"}

    def test_custom_model(self):
        provider = ProviderConfig("ollama", {"model": "custom", "custom_model": "mistral:7b"})
        assert provider.backend_params() == {"model": "mistral:7b"}

    def test_custom_model_missing(self):
        provider = ProviderConfig("ollama", {"model": "custom", "custom_model": ""})
        with pytest.raises(ConfigurationError, match="custom_model"):
            provider.backend_params()

    def test_custom_model_ignored_otherwise(self):
        provider = ProviderConfig("gemini", {"model": "gemini-pro", "custom_model": "x"})
        assert provider.backend_params() == {"model": "gemini-pro"}
