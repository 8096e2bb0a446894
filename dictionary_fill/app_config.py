"""Application configuration module for the dictionary fill pipeline."""
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from openai import AsyncOpenAI

from dictionary_fill.logging_config import setup_logger

CONFIG_FILE_ENV_VAR = 'DICTIONARY_FILL_CONFIG'
DEFAULT_NB_CONCURRENT_TRANSLATIONS = 5
DEFAULT_FILE_PATTERNS = ['**/*.content.json']


class ConfigurationError(Exception):
    """Raised when the configuration does not allow a fill run to start."""


@dataclass(frozen=True)
class EditorConfig:
    """Credentials of the editor backend (remote AI and distant dictionaries)."""
    backend_url: str = 'http://localhost:3100'
    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class AIConfig:
    """Settings of the direct OpenAI translation provider."""
    api_key: Optional[str] = None
    model_name: str = 'gpt-4o-mini'
    temperature: float = 0.1
    application_context: str = ''
    max_model_tokens: int = 16000
    requests_per_minute: int = 60


@dataclass(frozen=True)
class AppConfig:
    """Application configuration dataclass, resolved once per run."""
    # Content locations
    base_dir: str
    content_dir: str
    file_patterns: List[str]
    dictionaries_dir: str
    unmerged_dictionaries_dir: str

    # Internationalization
    default_locale: str
    locales: List[str]
    locale_names: Dict[str, str]

    # Processing settings
    nb_concurrent_translations: int
    dry_run: bool

    editor: EditorConfig = field(default_factory=EditorConfig)
    ai: AIConfig = field(default_factory=AIConfig)

    # OpenAI client, only created when an API key is available
    openai_client: Optional[AsyncOpenAI] = None


def _load_dotenv_files(base_dir: str) -> None:
    """Load .env files from the base directory or its docker directory."""
    dotenv_path_base_dir = os.path.join(base_dir, '.env')
    dotenv_path_docker_dir = os.path.join(base_dir, 'docker', '.env')

    if os.path.exists(dotenv_path_base_dir):
        load_dotenv(dotenv_path_base_dir)
    elif os.path.exists(dotenv_path_docker_dir):
        load_dotenv(dotenv_path_docker_dir)


def _load_yaml_config(base_dir: str, config_file: Optional[str] = None) -> Dict[str, Any]:
    """Load the YAML configuration file, falling back to an empty configuration."""
    default_config_path = os.path.join(base_dir, 'config.yaml')
    config_file = config_file or os.environ.get(CONFIG_FILE_ENV_VAR, default_config_path)

    if not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)

    config = {}
    try:
        if not os.path.exists(config_file):
            print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
                  file=sys.stderr)
            print(f"Tip: Create a config.yaml file in '{base_dir}' or set {CONFIG_FILE_ENV_VAR} environment variable.",
                  file=sys.stderr)
            return config

        if not os.access(config_file, os.R_OK):
            print(f"Error: Configuration file '{config_file}' exists but is not readable. Check file permissions.",
                  file=sys.stderr)
            return config

        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
            if loaded_config is None:
                print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
                      file=sys.stderr)
            elif isinstance(loaded_config, dict):
                config = loaded_config
            else:
                print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
                      file=sys.stderr)

    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
    except OSError as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)

    return config


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logger based on configuration."""
    log_config = config.get('logging', {}) or {}
    log_level_str = log_config.get('log_level', 'INFO').upper()
    log_file_path = log_config.get('log_file_path')
    log_to_console = log_config.get('log_to_console', True)
    return setup_logger(log_level_str, log_file_path, log_to_console)


def _build_locale_mappings(locales_list: List[Any]) -> Tuple[List[str], Dict[str, str]]:
    """
    Build the locale code list and the code -> display name mapping.

    Entries may be plain codes (``"fr"``) or ``{code, name}`` mappings.
    """
    locales: List[str] = []
    locale_names: Dict[str, str] = {}

    for locale in locales_list:
        if isinstance(locale, str):
            code, name = locale, None
        else:
            code, name = locale.get('code'), locale.get('name')
        if not code or code in locale_names:
            continue
        locales.append(code)
        locale_names[code] = name or code

    return locales, locale_names


def _resolve_path(base_dir: str, path: str) -> str:
    if os.path.isabs(path):
        return os.path.normpath(path)
    return os.path.normpath(os.path.join(base_dir, path))


def _create_openai_client(api_key: Optional[str], logger: logging.Logger) -> Optional[AsyncOpenAI]:
    """Create the OpenAI client when an API key is configured."""
    if not api_key:
        logger.debug("No OPENAI_API_KEY configured, the OpenAI client will not be initialized")
        return None

    if not api_key.startswith('sk-'):
        logger.warning("Warning: OPENAI_API_KEY does not start with 'sk-'. This may be invalid.")

    try:
        client = AsyncOpenAI(api_key=api_key)
        logger.debug("OpenAI client initialized successfully")
        return client
    except Exception as e:
        raise ConfigurationError(f"Failed to initialize OpenAI client: {e}") from e


def load_app_config(config_file: Optional[str] = None, base_dir: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from the YAML file and environment variables.

    Args:
        config_file: Optional explicit path to the YAML file.
        base_dir: Optional base directory; defaults to ``base_dir`` from the YAML or the CWD.

    Returns:
        AppConfig: The loaded application configuration.
    """
    initial_base_dir = os.path.abspath(base_dir or os.getcwd())

    _load_dotenv_files(initial_base_dir)

    config = _load_yaml_config(initial_base_dir, config_file)

    logger = _setup_logger_from_config(config)

    resolved_base_dir = _resolve_path(initial_base_dir, base_dir or config.get('base_dir', '.'))

    content_config = config.get('content', {}) or {}
    content_dir = _resolve_path(resolved_base_dir, content_config.get('content_dir', '.'))
    file_patterns = content_config.get('file_patterns', DEFAULT_FILE_PATTERNS)
    main_dir = _resolve_path(resolved_base_dir, content_config.get('main_dir', '.dictionaries'))
    dictionaries_dir = _resolve_path(main_dir, content_config.get('dictionaries_dir', 'dictionary'))
    unmerged_dictionaries_dir = _resolve_path(
        main_dir, content_config.get('unmerged_dictionaries_dir', 'unmerged_dictionary')
    )

    i18n_config = config.get('internationalization', {}) or {}
    locales, locale_names = _build_locale_mappings(
        i18n_config.get('supported_locales', [{'code': 'en', 'name': 'English'}])
    )
    default_locale = i18n_config.get('default_locale', locales[0] if locales else 'en')
    if default_locale not in locales:
        logger.warning("Default locale '%s' is not part of the supported locales %s", default_locale, locales)

    editor_config = config.get('editor', {}) or {}
    editor = EditorConfig(
        backend_url=editor_config.get('backend_url', EditorConfig.backend_url).rstrip('/'),
        client_id=os.environ.get('EDITOR_CLIENT_ID', editor_config.get('client_id')),
        client_secret=os.environ.get('EDITOR_CLIENT_SECRET', editor_config.get('client_secret')),
    )

    ai_config = config.get('ai', {}) or {}
    ai = AIConfig(
        api_key=os.environ.get('OPENAI_API_KEY', ai_config.get('api_key')),
        model_name=os.environ.get('FILL_MODEL_NAME', ai_config.get('model_name', AIConfig.model_name)),
        temperature=ai_config.get('temperature', AIConfig.temperature),
        application_context=ai_config.get('application_context', ''),
        max_model_tokens=ai_config.get('max_model_tokens', AIConfig.max_model_tokens),
        requests_per_minute=ai_config.get('requests_per_minute', AIConfig.requests_per_minute),
    )

    nb_concurrent_translations = int(os.environ.get(
        'NB_CONCURRENT_TRANSLATIONS',
        config.get('nb_concurrent_translations', DEFAULT_NB_CONCURRENT_TRANSLATIONS)
    ))

    return AppConfig(
        base_dir=resolved_base_dir,
        content_dir=content_dir,
        file_patterns=list(file_patterns),
        dictionaries_dir=dictionaries_dir,
        unmerged_dictionaries_dir=unmerged_dictionaries_dir,
        default_locale=default_locale,
        locales=locales,
        locale_names=locale_names,
        nb_concurrent_translations=nb_concurrent_translations,
        dry_run=config.get('dry_run', False),
        editor=editor,
        ai=ai,
        openai_client=_create_openai_client(ai.api_key, logger),
    )


def check_ai_access(config: AppConfig, ai_options: Optional[Dict[str, Any]] = None) -> None:
    """
    Make sure at least one translation provider can be reached.

    Raises:
        ConfigurationError: When neither an OpenAI key nor editor credentials are configured.
    """
    if config.ai.api_key or (ai_options or {}).get('api_key'):
        return
    if config.editor.has_credentials:
        return
    raise ConfigurationError(
        "AI options or API key not provided. Set OPENAI_API_KEY, or configure the editor "
        "client_id and client_secret to use the remote translation service."
    )


def get_locale_name(config: AppConfig, locale: str) -> str:
    """Return the display name of a locale code, or the code itself."""
    return config.locale_names.get(locale, locale)
