"""Unit tests for the app_config module."""
import os
from unittest.mock import MagicMock, patch

import pytest
import yaml

from dictionary_fill.app_config import (
    AIConfig,
    ConfigurationError,
    EditorConfig,
    check_ai_access,
    get_locale_name,
    load_app_config,
)

FULL_CONFIG = {
    "content": {
        "content_dir": "src",
        "file_patterns": ["**/*.content.json", "**/*.i18n.json"],
        "main_dir": ".build",
    },
    "internationalization": {
        "default_locale": "en",
        "supported_locales": [
            {"code": "en", "name": "English"},
            {"code": "fr", "name": "French"},
            "es",
        ],
    },
    "editor": {"backend_url": "https://editor.example.com/", "client_id": "yaml-id"},
    "ai": {"model_name": "gpt-4o", "temperature": 0.3, "application_context": "A recipes app"},
    "nb_concurrent_translations": 3,
    "dry_run": True,
    "logging": {"log_level": "DEBUG"},
}


def write_config(tmp_path, data):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(data), encoding="utf-8")
    return str(config_path)


@pytest.fixture(autouse=True)
def quiet_logger():
    with patch("dictionary_fill.app_config.setup_logger") as mock_setup_logger:
        mock_setup_logger.return_value = MagicMock()
        yield mock_setup_logger


class TestLoadAppConfig:

    def test_load_config_with_valid_yaml_file(self, tmp_path):
        config_file = write_config(tmp_path, FULL_CONFIG)

        with patch.dict(os.environ, {}, clear=True):
            config = load_app_config(config_file=config_file, base_dir=str(tmp_path))

        assert config.base_dir == str(tmp_path)
        assert config.content_dir == os.path.join(str(tmp_path), "src")
        assert config.file_patterns == ["**/*.content.json", "**/*.i18n.json"]
        assert config.dictionaries_dir == os.path.join(str(tmp_path), ".build", "dictionary")
        assert config.unmerged_dictionaries_dir == os.path.join(str(tmp_path), ".build", "unmerged_dictionary")
        assert config.locales == ["en", "fr", "es"]
        assert config.locale_names == {"en": "English", "fr": "French", "es": "es"}
        assert config.default_locale == "en"
        assert config.nb_concurrent_translations == 3
        assert config.dry_run is True
        assert config.editor.backend_url == "https://editor.example.com"
        assert config.editor.client_id == "yaml-id"
        assert config.editor.has_credentials is False
        assert config.ai.model_name == "gpt-4o"
        assert config.ai.temperature == 0.3
        assert config.ai.application_context == "A recipes app"
        assert config.openai_client is None

    def test_missing_file_uses_defaults(self, tmp_path):
        with patch.dict(os.environ, {}, clear=True):
            config = load_app_config(config_file=str(tmp_path / "missing.yaml"), base_dir=str(tmp_path))

        assert config.locales == ["en"]
        assert config.default_locale == "en"
        assert config.nb_concurrent_translations == 5
        assert config.dry_run is False
        assert config.file_patterns == ["**/*.content.json"]
        assert config.ai == AIConfig()
        assert config.editor == EditorConfig()

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("content: [unclosed", encoding="utf-8")

        with patch.dict(os.environ, {}, clear=True):
            config = load_app_config(config_file=str(config_path), base_dir=str(tmp_path))

        assert config.locales == ["en"]

    def test_environment_overrides(self, tmp_path):
        config_file = write_config(tmp_path, FULL_CONFIG)
        env = {
            "OPENAI_API_KEY": "sk-from-env",
            "FILL_MODEL_NAME": "gpt-4.1",
            "EDITOR_CLIENT_ID": "env-id",
            "EDITOR_CLIENT_SECRET": "env-secret",
            "NB_CONCURRENT_TRANSLATIONS": "7",
        }

        with patch("dictionary_fill.app_config.AsyncOpenAI") as mock_openai:
            with patch.dict(os.environ, env, clear=True):
                config = load_app_config(config_file=config_file, base_dir=str(tmp_path))

        mock_openai.assert_called_once_with(api_key="sk-from-env")
        assert config.openai_client is mock_openai.return_value
        assert config.ai.api_key == "sk-from-env"
        assert config.ai.model_name == "gpt-4.1"
        assert config.editor.client_id == "env-id"
        assert config.editor.has_credentials is True
        assert config.nb_concurrent_translations == 7

    def test_config_file_from_environment_variable(self, tmp_path):
        config_file = write_config(tmp_path, {"nb_concurrent_translations": 2})

        with patch.dict(os.environ, {"DICTIONARY_FILL_CONFIG": config_file}, clear=True):
            config = load_app_config(base_dir=str(tmp_path))

        assert config.nb_concurrent_translations == 2


class TestCheckAIAccess:

    def test_no_key_and_no_credentials_is_fatal(self, make_config):
        with pytest.raises(ConfigurationError):
            check_ai_access(make_config(ai=AIConfig()))

    def test_api_key_in_config(self, make_config):
        check_ai_access(make_config(ai=AIConfig(api_key="sk-x")))

    def test_api_key_in_ai_options(self, make_config):
        check_ai_access(make_config(ai=AIConfig()), {"api_key": "sk-x"})

    def test_editor_credentials(self, make_config):
        check_ai_access(make_config(ai=AIConfig(), editor=EditorConfig(client_id="id", client_secret="secret")))


def test_get_locale_name(make_config):
    config = make_config()

    assert get_locale_name(config, "fr") == "French"
    assert get_locale_name(config, "pt") == "pt"
