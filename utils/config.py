"""
Configuration loader.

Loads settings from config.json (required). Provides accessor functions
for specific configuration sections.
"""

import json
import os
import sys
from pathlib import Path

from .error_handling import ConfigError


# Cached configuration (populated by get_config on first call)
_config_cache = None

DEFAULT_PRIMARY_MODEL = 'openrouter-flash'
DEFAULT_SECONDARY_MODEL = 'gemini-flash'

# Environment variables checked before the config file's api_keys section.
API_KEY_ENV_VARS = {
    'openrouter': 'OPENROUTER_API_KEY',
    'gemini': 'GEMINI_API_KEY',
    'claude': 'ANTHROPIC_API_KEY',
}


def get_config(config_path: str = 'config.json') -> dict:
    """
    Load configuration from config.json.

    The config file is required. If it does not exist, prints an error
    message and exits.

    Args:
        config_path: Path to config file (default: 'config.json' in current directory)

    Returns:
        Configuration dictionary
    """
    global _config_cache

    if _config_cache is not None:
        return _config_cache

    if not os.path.exists(config_path):
        print(f"Error: Configuration file '{config_path}' not found.", file=sys.stderr)
        print("This file is required. See config.json in the project repository for the expected format.", file=sys.stderr)
        sys.exit(1)

    with open(config_path, 'r', encoding='utf-8') as f:
        _config_cache = json.load(f)

    return _config_cache


def get_output_directory(config: dict = None) -> str:
    """
    Get configured output directory, creating it if necessary.

    Args:
        config: Configuration dictionary (loads from file if None)

    Returns:
        Absolute path to output directory
    """
    if config is None:
        config = get_config()

    output_dir = config.get('output', {}).get('directory')
    if not output_dir:
        output_dir = os.path.join(os.path.expanduser('~'), 'process_analyzer_output')

    output_dir = os.path.expanduser(output_dir)
    Path(output_dir).mkdir(parents=True, exist_ok=True)

    return output_dir


def get_cache_file(config: dict = None) -> str:
    """
    Get the analysis cache file path.

    Defaults to analysis_cache.json inside the output directory.
    """
    if config is None:
        config = get_config()

    cache_file = config.get('cache', {}).get('file')
    if not cache_file:
        return os.path.join(get_output_directory(config), 'analysis_cache.json')
    return os.path.expanduser(cache_file)


def get_model_config(config: dict, model_name: str) -> dict:
    """
    Get configuration for a specific model name.

    Args:
        config: Configuration dictionary
        model_name: Model name (e.g., 'openrouter-flash', 'gemini-flash')

    Returns:
        Dict with 'platform', 'model', 'max_tokens', etc.

    Raises:
        ConfigError: If model name not found in configuration
    """
    models = config.get('models', {})

    if model_name not in models:
        raise ConfigError(f"Model '{model_name}' not found in configuration. Available models: {list(models.keys())}")

    model_config = models[model_name]
    if 'platform' not in model_config or 'model' not in model_config:
        raise ConfigError(f"Model '{model_name}' must define both 'platform' and 'model'.")
    return model_config


def get_primary_model(config: dict) -> str:
    """Model name tried first for every batch."""
    return config.get('providers', {}).get('primary', DEFAULT_PRIMARY_MODEL)


def get_secondary_model(config: dict) -> str:
    """Model name used when the primary is unavailable or exhausted."""
    return config.get('providers', {}).get('secondary', DEFAULT_SECONDARY_MODEL)


def get_max_retries_per_model(config: dict) -> int:
    """
    Get maximum retry count per model.

    Args:
        config: Configuration dictionary

    Returns:
        Max retries per model (default: 3 if not configured)
    """
    value = config.get('retry', {}).get('max_retries_per_model', 3)
    if not isinstance(value, int) or value < 0:
        raise ConfigError(f"retry.max_retries_per_model must be a non-negative integer, got {value!r}.")
    return value


def get_retry_base_delay(config: dict) -> float:
    """Base backoff delay in seconds (default: 1.0)."""
    value = config.get('retry', {}).get('base_delay_seconds', 1.0)
    if not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(f"retry.base_delay_seconds must be a non-negative number, got {value!r}.")
    return float(value)


def get_batch_size(config: dict) -> int:
    """Target number of processes per model call (default: 32)."""
    value = config.get('batching', {}).get('target_batch_size', 32)
    if not isinstance(value, int) or value <= 0:
        raise ConfigError(f"batching.target_batch_size must be a positive integer, got {value!r}.")
    return value


def get_batching_strategy(config: dict) -> str:
    """
    Get batching strategy.

    Returns:
        'round_robin' (default) or 'sequential'
    """
    value = config.get('batching', {}).get('strategy', 'round_robin')
    if value not in ('round_robin', 'sequential'):
        raise ConfigError(f"batching.strategy must be 'round_robin' or 'sequential', got {value!r}.")
    return value


def get_memory_metric(config: dict) -> str:
    """
    Get the memory figure sent to the model.

    Returns:
        'private' (private working set, default) or 'rss'
    """
    value = config.get('telemetry', {}).get('memory_metric', 'private')
    if value not in ('private', 'rss'):
        raise ConfigError(f"telemetry.memory_metric must be 'private' or 'rss', got {value!r}.")
    return value


def get_api_key(config: dict, platform: str) -> str:
    """
    Get the credential for a provider platform.

    Checks the platform's environment variable first, then the
    'api_keys' section of the configuration.

    Args:
        config: Configuration dictionary
        platform: Platform name ('openrouter', 'gemini', 'claude')

    Returns:
        API key, or empty string if none is configured
    """
    platform_lower = platform.lower()
    env_var = API_KEY_ENV_VARS.get(platform_lower)
    if env_var and os.environ.get(env_var):
        return os.environ[env_var]
    return config.get('api_keys', {}).get(platform_lower, '') or ''
