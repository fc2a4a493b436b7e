"""Config Loader - Loads session configuration.

Two formats are supported:

- YAML (preferred), validated into SessionConfig, with ${ENV_VAR}
  substitution so secrets can stay out of the file:

      legacy:
        api_key: ${FLICKR_API_KEY}
        shared_secret: ${FLICKR_SECRET}
      request_delay_ms: 1000

- The INI-style ~/.flickcurl.conf used by older command line tools:

      [flickr]
      api_key=0123456789abcdef0123456789abcdef
      secret=fedcba9876543210
      auth_token=1234567-8901234567890123
"""

from __future__ import annotations

import configparser
import os
import re
from pathlib import Path
from typing import Any

import yaml

from flickr_rest.models import LegacyCredentials, OAuthCredentials, SessionConfig


class ConfigError(Exception):
    """Raised when configuration loading fails."""


DEFAULT_INI_PATH = Path.home() / ".flickcurl.conf"

# INI key -> (credential group, field)
_INI_KEYS: dict[str, tuple[str, str]] = {
    "api_key": ("legacy", "api_key"),
    "secret": ("legacy", "shared_secret"),
    "auth_token": ("legacy", "auth_token"),
    "oauth_client_key": ("oauth", "consumer_key"),
    "oauth_client_secret": ("oauth", "consumer_secret"),
    "oauth_token": ("oauth", "token"),
    "oauth_token_secret": ("oauth", "token_secret"),
}


def load_session_config(config_path: Path) -> SessionConfig:
    """Load session configuration from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _substitute_env_vars(raw_config)

    try:
        return SessionConfig.model_validate(raw_config)
    except Exception as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def load_ini_config(
    config_path: Path | None = None,
    section: str = "flickr",
    base: SessionConfig | None = None,
) -> SessionConfig:
    """Load credentials from an INI file section into a SessionConfig.

    Args:
        config_path: File to read; defaults to ~/.flickcurl.conf.
        section: Section holding the keys.
        base: Config whose non-credential settings are kept.

    Unknown keys in the section are ignored.
    """
    path = config_path or DEFAULT_INI_PATH
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    parser = configparser.ConfigParser(interpolation=None, comment_prefixes=("#", ";"))
    try:
        with open(path, "r", encoding="utf-8") as f:
            parser.read_file(f)
    except configparser.Error as e:
        raise ConfigError(f"Invalid INI config file: {e}") from e

    if not parser.has_section(section):
        raise ConfigError(f"Section [{section}] not found in {path}")

    groups: dict[str, dict[str, str]] = {"legacy": {}, "oauth": {}}
    for key, value in parser.items(section):
        mapped = _INI_KEYS.get(key)
        if mapped is None:
            continue
        group, field = mapped
        groups[group][field] = value.strip()

    changes: dict[str, Any] = {}
    if groups["legacy"]:
        changes["legacy"] = LegacyCredentials(**groups["legacy"])
    if groups["oauth"]:
        changes["oauth"] = OAuthCredentials(**groups["oauth"])

    return (base or SessionConfig()).model_copy(update=changes)


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return pattern.sub(replacer, s)
