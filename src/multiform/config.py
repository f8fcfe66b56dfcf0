"""Configuration of Multiform, from defaults, TOML files and the environment.

A configuration file is looked up as `.multiform.toml`, `multiform.toml` or
the `[tool.multiform]` table of `pyproject.toml`::

    placeholder_key = "__id__"

    [databases.default]
    provider = "sqlite"
    database_uri = "sqlite:///${DATA_DIR|.}/shop.db"

    [logging]
    level = "WARNING"

    # Used when MULTIFORM_ENV=test
    [test.databases.default]
    provider = "memory"
"""

import logging
import os
import re
from pathlib import Path

import tomllib

from multiform.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILES = [".multiform.toml", "multiform.toml", "pyproject.toml"]

# Directories searched: the starting one and two of its parents
SEARCH_DEPTH = 3


def _default_config():
    """Return a fresh copy of the defaults, safe to modify"""
    return {
        "env": None,
        "debug": None,
        "databases": {
            "default": {"provider": "memory"},
        },
        # Row key of the template row that client-side scripts clone
        "placeholder_key": "__id__",
        # Prefix of keys given to rows that have not been saved yet
        "pending_key_prefix": "new",
        "logging": {
            "level": "INFO",
            "format": None,
        },
    }


def find_config_file(start) -> Path | None:
    """Return the first configuration file in `start` or its parents"""
    directory = Path(start).resolve()
    if not directory.is_dir():
        directory = directory.parent

    for candidate in [directory, *directory.parents][:SEARCH_DEPTH]:
        for file_name in CONFIG_FILES:
            if (candidate / file_name).exists():
                return candidate / file_name

    return None


def _merge(base: dict, overrides: dict) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config(dict):
    """Configuration values, loaded from a dictionary or a TOML file.

    String values may refer to environment variables as `${VAR}` or
    `${VAR|default}`. A section named after `MULTIFORM_ENV` overrides the
    base values.
    """

    ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"'Config' object has no attribute '{name}'")

    @classmethod
    def load_from_dict(cls, config: dict = None):
        """Build a configuration from a dictionary, on top of the defaults"""
        config = cls._normalize_config(config or {})
        return cls(**cls._load_env_vars(config))

    @classmethod
    def load_from_path(cls, path: str):
        """Build a configuration from the file found at or above `path`"""
        config_file = find_config_file(path)
        if config_file is None:
            raise ConfigurationError(f"No configuration file found in {path}")

        logger.debug(f"Loading configuration from {config_file}")
        try:
            config = tomllib.loads(config_file.read_text())
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Could not parse {config_file}: {exc}") from exc

        if config_file.name == "pyproject.toml":
            config = config.get("tool", {}).get("multiform", {})

        return cls.load_from_dict(config)

    @classmethod
    def _normalize_config(cls, config):
        """Merge known keys of `config`, then the active environment's section, onto the defaults"""
        defaults = _default_config()
        normalized = _merge(
            defaults, {key: value for key, value in config.items() if key in defaults}
        )

        environment = os.environ.get("MULTIFORM_ENV") or None
        if environment and environment in config:
            normalized = _merge(normalized, config[environment])
            normalized["env"] = environment

        databases = normalized["databases"]
        if not isinstance(databases, dict) or "default" not in databases:
            raise ConfigurationError("You must define a 'default' database")

        return normalized

    @classmethod
    def _load_env_vars(cls, config):
        for key, value in config.items():
            if isinstance(value, str):
                config[key] = cls._replace_env_var(value)
            elif isinstance(value, dict):
                config[key] = cls._load_env_vars(value)
            elif isinstance(value, list):
                config[key] = [
                    cls._replace_env_var(item) if isinstance(item, str) else item
                    for item in value
                ]
        return config

    @classmethod
    def _replace_env_var(cls, value):
        """Substitute `${VAR}` and `${VAR|default}` references in a string.

        A variable that is not set and has no default is a configuration error.
        """

        def substitute(match):
            name, has_default, default = match.group(1).partition("|")
            env_value = os.environ.get(name, default if has_default else None)
            if env_value is None:
                raise ConfigurationError(f"Environment variable {name} is not set")
            return env_value

        return cls.ENV_VAR_PATTERN.sub(substitute, value)
