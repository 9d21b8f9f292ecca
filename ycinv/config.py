"""
YC Inventory - Configuration Management

Supports loading configuration from:
1. YAML config file (--config)
2. Environment variables (YCI_*)
3. Command-line arguments (highest priority)

Config file example:
```yaml
output: "./inventory"
log_level: INFO
workers: 10
page_size: 1000
cloud_ids:
  - b1gxxxxxxxxxxxxxxxxx
```

Credentials are resolved separately, once, before collection starts:
--token, then YANDEX_CLOUD_TOKEN, then the yc CLI config file.
"""
import logging
import os
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .constants import (
    DEFAULT_LOG_LEVEL,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PARALLEL_WORKERS,
    TOKEN_ENV_VAR,
    YC_CLI_CONFIG_PATH,
    YC_CLI_DEFAULT_PROFILE,
)

logger = logging.getLogger(__name__)


# Default config file locations (checked in order)
DEFAULT_CONFIG_PATHS = [
    './yci-config.yaml',
    './yci-config.yml',
    '~/.yci/config.yaml',
    '~/.yci/config.yml',
]

# Mapping from config keys to env vars
ENV_VAR_MAPPING = {
    'output': 'YCI_OUTPUT',
    'log_level': 'YCI_LOG_LEVEL',
    'workers': 'YCI_WORKERS',
    'page_size': 'YCI_PAGE_SIZE',
    'cloud_ids': 'YCI_CLOUD_IDS',
}

LIST_KEYS = ('cloud_ids',)
INT_KEYS = ('workers', 'page_size')
STR_KEYS = ('output', 'log_level')

DEFAULTS: Dict[str, Any] = {
    'output': DEFAULT_OUTPUT_DIR,
    'log_level': DEFAULT_LOG_LEVEL,
    'workers': DEFAULT_PARALLEL_WORKERS,
    'page_size': DEFAULT_PAGE_SIZE,
    'cloud_ids': [],
}


class CredentialsError(Exception):
    """No usable token could be found."""


@dataclass(frozen=True)
class Credentials:
    """Resolved credentials, passed explicitly to the API layer."""
    token: str
    source: str

    def __repr__(self) -> str:
        return f"Credentials(source={self.source!r}, token='***')"


def _substitute_env_vars(value: Any) -> Any:
    """Substitute ${ENV_VAR} patterns in string values."""
    if isinstance(value, str):
        # Pattern: ${VAR_NAME} or ${VAR_NAME:-default}
        pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

        def replace(match):
            var_name = match.group(1)
            default = match.group(2) or ''
            return os.environ.get(var_name, default)

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _split_list(value: Any) -> list:
    if isinstance(value, str):
        return [v.strip() for v in value.split(',') if v.strip()]
    return list(value or [])


def _normalize(config: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce list, integer and string keys from their YAML or env forms."""
    result = dict(config)
    for key in STR_KEYS:
        if key in result and result[key] is not None:
            result[key] = str(result[key])
    for key in LIST_KEYS:
        if key in result and result[key] is not None:
            result[key] = _split_list(result[key])
    for key in INT_KEYS:
        if key in result and result[key] is not None:
            try:
                result[key] = int(result[key])
            except (TypeError, ValueError):
                raise ValueError(f"Config value '{key}' must be an integer, got {result[key]!r}") from None
    return result


def _warn_if_loose_permissions(path: Path) -> None:
    file_mode = path.stat().st_mode
    if file_mode & (stat.S_IRWXG | stat.S_IRWXO):  # Group or world access
        logger.warning(f"{path} has loose permissions. Consider: chmod 600 {path}")


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML file."""
    path = Path(config_path).expanduser()

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    _warn_if_loose_permissions(path)
    logger.info(f"Loading config from {path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    return _normalize(_substitute_env_vars(config))


def find_default_config() -> Optional[str]:
    """Find a config file in default locations."""
    for path in DEFAULT_CONFIG_PATHS:
        expanded = Path(path).expanduser()
        if expanded.exists():
            return str(expanded)
    return None


def load_env_config() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config: Dict[str, Any] = {}
    for config_key, env_var in ENV_VAR_MAPPING.items():
        value = os.environ.get(env_var)
        if value is not None:
            config[config_key] = value
    return _normalize(config)


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge multiple config dicts. Later configs override earlier ones."""
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = merge_configs(result[key], value)
            elif value is not None:
                result[key] = value

    return result


def args_to_config(args) -> Dict[str, Any]:
    """Convert argparse args to config dict format."""
    config: Dict[str, Any] = {}
    for key in DEFAULTS:
        value = getattr(args, key, None)
        if value is not None:
            config[key] = value
    return _normalize(config)


def load_config(args) -> Dict[str, Any]:
    """
    Load configuration from all sources and merge them.

    Priority (highest to lowest):
    1. CLI arguments
    2. Config file (--config or default location)
    3. Environment variables
    4. Built-in defaults

    Returns merged config dict.
    """
    configs = [dict(DEFAULTS)]

    env_config = load_env_config()
    if env_config:
        logger.debug("Loaded config from environment variables")
        configs.append(env_config)

    config_path = getattr(args, 'config', None)
    if config_path:
        configs.append(load_config_file(config_path))
    else:
        default_config = find_default_config()
        if default_config:
            logger.info(f"Found default config file: {default_config}")
            configs.append(load_config_file(default_config))

    configs.append(args_to_config(args))

    merged = merge_configs(*configs)
    if merged['workers'] < 1:
        raise ValueError(f"workers must be at least 1, got {merged['workers']}")
    return merged


# =============================================================================
# Credentials
# =============================================================================

def load_cli_token(config_path: str = YC_CLI_CONFIG_PATH) -> Optional[str]:
    """
    Read the OAuth token of the active profile from the yc CLI config.

    The active profile is named by the top-level `current` key; `default`
    is used when it is absent.
    """
    path = Path(config_path).expanduser()
    if not path.exists():
        return None

    with open(path) as f:
        cli_config = yaml.safe_load(f) or {}

    profiles = cli_config.get('profiles') or {}
    profile_name = cli_config.get('current') or YC_CLI_DEFAULT_PROFILE
    profile = profiles.get(profile_name) or {}
    token = profile.get('token')
    if not token:
        logger.debug(f"No token in profile '{profile_name}' of {path}")
        return None
    return str(token)


def resolve_credentials(token: Optional[str] = None,
                        cli_config_path: str = YC_CLI_CONFIG_PATH) -> Credentials:
    """
    Resolve the API token once: explicit flag, then environment, then file.

    Raises:
        CredentialsError: If no source provides a token
    """
    if token:
        return Credentials(token=token, source='flag')

    env_token = os.environ.get(TOKEN_ENV_VAR)
    if env_token:
        return Credentials(token=env_token, source='env')

    file_token = load_cli_token(cli_config_path)
    if file_token:
        return Credentials(token=file_token, source='file')

    raise CredentialsError(
        f"No token found. Pass --token, set {TOKEN_ENV_VAR}, "
        f"or configure a profile in {cli_config_path}"
    )


def generate_sample_config() -> str:
    """Generate a sample config file content."""
    return '''# YC Inventory Configuration
#
# Environment variable substitution supported:
#   ${VAR_NAME}           - required env var
#   ${VAR_NAME:-default}  - env var with default value
#
# The API token is never read from this file. Use --token,
# YANDEX_CLOUD_TOKEN, or the yc CLI profile.

# Output directory for the report, inventory and summary
output: "./inventory"

# Logging level: DEBUG, INFO, WARNING, ERROR
log_level: INFO

# Concurrent workers per collection phase. This is the only throttle
# against API rate limits, so keep it conservative.
workers: 10

# Page-size hint for listing calls
page_size: 1000

# Restrict collection to these clouds (default: every visible cloud)
# cloud_ids:
#   - b1gxxxxxxxxxxxxxxxxx
'''
