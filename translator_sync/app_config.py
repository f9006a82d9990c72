"""Application configuration: .env files, the YAML config file and environment overrides."""
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from translator_sync.errors import ConfigurationError
from translator_sync.json_parser import ResourceShape
from translator_sync.logging_config import setup_logger

CONFIG_FILENAME = ".translator-sync.yaml"
VALID_PROVIDERS = ("openai", "deepseek", "groq", "mock")
DEFAULT_DIRECTORIES = ["./locales", "./public/locales", "./src/locales"]
DEFAULT_PRIMARY_LANGUAGE = "en"
DEFAULT_COST_WARNING_THRESHOLD = 1.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RATE_LIMIT_PER_MINUTE = 60

# Provider-specific key variables, checked after TRANSLATOR_API_KEY.
PROVIDER_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "groq": "GROQ_API_KEY",
}


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    project_root: str
    config_file_path: Optional[str]

    # Backend
    provider: str = "openai"
    model_name: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    base_url: Optional[str] = None
    timeout: Optional[float] = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    rate_limit_per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE

    # Sync
    primary_language: str = DEFAULT_PRIMARY_LANGUAGE
    directories: List[str] = field(default_factory=lambda: list(DEFAULT_DIRECTORIES))
    project_description: Optional[str] = None
    json_shape: Optional[ResourceShape] = None
    cost_warning_threshold: float = DEFAULT_COST_WARNING_THRESHOLD
    dry_run: bool = False

    # Logging
    log_level: str = "INFO"
    log_file_path: Optional[str] = None
    log_to_console: bool = True


def find_config_file(start_dir: Optional[str] = None) -> Optional[str]:
    """Search ``start_dir`` and its parents for ``.translator-sync.yaml``."""
    current_dir = os.path.abspath(start_dir or os.getcwd())
    while True:
        candidate = os.path.join(current_dir, CONFIG_FILENAME)
        if os.path.isfile(candidate):
            return candidate
        parent_dir = os.path.dirname(current_dir)
        if parent_dir == current_dir:
            return None
        current_dir = parent_dir


def _resolve_config_path(config_path: Optional[str], project_root: str) -> Optional[str]:
    config_file = config_path or os.environ.get('TRANSLATOR_CONFIG_FILE') or find_config_file(project_root)
    if config_file and not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)
    return config_file


def _load_dotenv_files(project_root: str) -> Optional[str]:
    """Load the .env file of the project root, if any. Existing variables win."""
    dotenv_path = os.path.join(project_root, '.env')
    if os.path.exists(dotenv_path):
        load_dotenv(dotenv_path)
        return dotenv_path
    return None


def _load_yaml_config(config_file: Optional[str]) -> Dict[str, Any]:
    """Load the YAML configuration file; any problem yields a warning on stderr and the defaults."""
    config: Dict[str, Any] = {}
    if not config_file:
        print(f"No {CONFIG_FILENAME} found. Using default configuration.", file=sys.stderr)
        return config

    try:
        if not os.path.exists(config_file):
            print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
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


def _parse_number(value: Any, name: str, cast=float):
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from None


def _parse_json_shape(value: Any) -> Optional[ResourceShape]:
    if value in (None, ""):
        return None
    try:
        return ResourceShape(str(value).lower())
    except ValueError:
        raise ConfigurationError(f"Invalid json_shape {value!r}; expected 'flat' or 'nested'") from None


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Environment variables take precedence over the config file."""
    overridden = dict(config)

    env_provider = os.environ.get('TRANSLATOR_SERVICE')
    if env_provider:
        if env_provider.lower() in VALID_PROVIDERS:
            overridden['provider'] = env_provider.lower()
        else:
            print(f"Warning: Ignoring unknown TRANSLATOR_SERVICE '{env_provider}'.", file=sys.stderr)

    env_mapping = {
        'TRANSLATOR_MODEL': 'model_name',
        'TRANSLATOR_API_KEY': 'api_key',
        'TRANSLATOR_BASE_URL': 'base_url',
        'TRANSLATOR_TIMEOUT': 'timeout',
        'TRANSLATOR_MAX_RETRIES': 'max_attempts',
    }
    for env_name, config_key in env_mapping.items():
        value = os.environ.get(env_name)
        if value:
            overridden[config_key] = value
    return overridden


def build_app_config(config: Dict[str, Any], project_root: str, config_file_path: Optional[str] = None) -> AppConfig:
    """
    Turn a raw configuration dictionary into a validated ``AppConfig``.

    Raises:
        ConfigurationError: If a value has the wrong type or an unknown provider is named.
    """
    provider = str(config.get('provider', 'openai')).lower()
    if provider not in VALID_PROVIDERS:
        raise ConfigurationError(f"Unknown provider '{provider}'. Expected one of: {', '.join(VALID_PROVIDERS)}")

    api_key = config.get('api_key') or os.environ.get(PROVIDER_API_KEY_ENV.get(provider, ''), '') or None

    timeout = config.get('timeout')
    max_attempts = _parse_number(config.get('max_attempts', DEFAULT_MAX_ATTEMPTS), 'max_attempts', int)
    if max_attempts < 1:
        raise ConfigurationError(f"max_attempts must be at least 1, got {max_attempts}")

    directories = config.get('directories') or list(DEFAULT_DIRECTORIES)
    if isinstance(directories, str):
        directories = [directories]

    log_config = config.get('logging') or {}

    return AppConfig(
        project_root=project_root,
        config_file_path=config_file_path,
        provider=provider,
        model_name=config.get('model_name') or config.get('model'),
        api_key=api_key,
        base_url=config.get('base_url'),
        timeout=_parse_number(timeout, 'timeout') if timeout not in (None, "") else None,
        max_attempts=max_attempts,
        rate_limit_per_minute=_parse_number(
            config.get('rate_limit_per_minute', DEFAULT_RATE_LIMIT_PER_MINUTE), 'rate_limit_per_minute', int
        ),
        primary_language=config.get('primary_language', DEFAULT_PRIMARY_LANGUAGE),
        directories=[str(directory) for directory in directories],
        project_description=config.get('project_description'),
        json_shape=_parse_json_shape(config.get('json_shape')),
        cost_warning_threshold=_parse_number(
            config.get('cost_warning_threshold', DEFAULT_COST_WARNING_THRESHOLD), 'cost_warning_threshold'
        ),
        dry_run=bool(config.get('dry_run', False)),
        log_level=str(log_config.get('log_level', 'INFO')).upper(),
        log_file_path=log_config.get('log_file_path'),
        log_to_console=bool(log_config.get('log_to_console', True)),
    )


def _log_config_status(logger: logging.Logger, app_config: AppConfig, dotenv_path: Optional[str]) -> None:
    if dotenv_path:
        logger.info("Loaded environment variables from: %s", dotenv_path)
    else:
        logger.debug("No .env file found in '%s'. Relying on system environment variables if any.",
                     app_config.project_root)
    if app_config.config_file_path:
        logger.info("Using configuration file: %s", app_config.config_file_path)
    logger.info("Provider: %s, primary language: %s, dry run: %s",
                app_config.provider, app_config.primary_language, app_config.dry_run)


def load_app_config(config_path: Optional[str] = None, project_root: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from .env, the YAML file and environment variables.

    Args:
        config_path: Explicit configuration file. Defaults to ``TRANSLATOR_CONFIG_FILE``,
            then to ``.translator-sync.yaml`` in the working directory or a parent.
        project_root: Directory holding the .env file. Defaults to the working directory.

    Returns:
        AppConfig: The loaded application configuration, with the logger set up.
    """
    project_root = os.path.abspath(project_root or os.getcwd())

    dotenv_path = _load_dotenv_files(project_root)

    config_file = _resolve_config_path(config_path, project_root)
    config = _apply_env_overrides(_load_yaml_config(config_file))

    app_config = build_app_config(config, project_root, config_file)

    logger = setup_logger(app_config.log_level, app_config.log_file_path, app_config.log_to_console)
    _log_config_status(logger, app_config, dotenv_path)

    return app_config
