#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

import logging
import sys

import yaml

from .exit_codes import ConfigError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("relaygate")

CONFIG_FILENAMES = ['relaygate.json', 'relaygate.toml', 'relaygate.yaml', 'relaygate.yml']
HOME_CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path(git_dir: Optional[str] = None) -> Optional[Path]:
    """Get the path to the configuration file.

    Checks in order:
    1. RELAYGATE_CONFIG environment variable
    2. relaygate.* inside the repository's git directory
    3. ~/.relaygate/ directory

    Returns None when no configuration file exists; defaults apply.
    """
    if 'RELAYGATE_CONFIG' in os.environ:
        path = Path(os.environ['RELAYGATE_CONFIG'])
        if path.exists():
            return path
        raise ConfigError(f"RELAYGATE_CONFIG points to a missing file: {path}")

    if git_dir:
        for filename in CONFIG_FILENAMES:
            path = Path(git_dir) / filename
            if path.exists():
                return path

    home_dir = Path.home() / '.relaygate'
    for filename in HOME_CONFIG_FILENAMES:
        path = home_dir / filename
        if path.exists() and path.stat().st_size > 0:
            return path

    return None


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    """Parse a JSON, TOML or YAML configuration file."""
    suffix = config_path.suffix.lower()
    try:
        if suffix == '.toml':
            with open(config_path, 'rb') as f:
                file_config = tomllib.load(f)
        elif suffix in ('.yaml', '.yml'):
            with open(config_path, 'r') as f:
                file_config = yaml.safe_load(f) or {}
        else:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config from {config_path}: {e}") from e

    if not isinstance(file_config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping at the top level")
    return file_config


def load_config(git_dir: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration: defaults, then file, then environment overrides."""
    config = get_default_config()

    config_path = get_config_path(git_dir)
    if config_path is not None:
        logger.debug(f"Using config from {config_path}")
        config = merge_configs(config, _read_config_file(config_path))

    config = apply_env_overrides(config)
    _check_config(config)
    return config


def _check_config(config: Dict[str, Any]) -> None:
    """Reject configuration values the pipeline cannot run with."""
    baseline = config['pipeline'].get('baseline')
    if baseline not in ('reference', 'whitelist', 'none'):
        raise ConfigError(f"pipeline.baseline must be reference, whitelist or none (got {baseline!r})")

    timeout = config['sandbox'].get('timeout_seconds')
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        raise ConfigError(f"sandbox.timeout_seconds must be a positive number (got {timeout!r})")

    patterns = config['whitelist'].get('patterns')
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise ConfigError("whitelist.patterns must be a list of strings")


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "control": {
            "root": ".relay",
            "validation_program": "validation.py",
            "hook_scripts": ["pre-commit.py", "pre-receive.py"],
            # Searched in order; the first lives under the control root
            "signer_dirs": [".relay/.ssh", ".ssh"],
        },
        "whitelist": {
            "patterns": [
                "data/**/meta.yaml",
                "data/**/meta.yml",
                "data/**/index.md",
                ".relay/**",
                "hooks/**",
                ".relay.yaml",
            ]
        },
        "metadata": {
            "filenames": ["meta.yaml", "meta.yml"]
        },
        "sandbox": {
            "timeout_seconds": 2.0,
            "legacy_exports": False,
            "allowed_modules": [
                "re", "json", "datetime", "fnmatch", "posixpath",
                "math", "string", "itertools", "functools", "collections",
            ],
        },
        "pipeline": {
            "baseline": "whitelist",
            "default_branch": "main",
        },
        "index": {
            "filename": "relay_index.json"
        },
        "git": {
            "timeout_seconds": 30
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def _coerce_env_value(value: str) -> Any:
    """Convert an environment string into a bool, int, float or string."""
    lowered = value.lower()
    if lowered in ('true', 'yes', 'on'):
        return True
    if lowered in ('false', 'no', 'off'):
        return False
    if value.isdigit():
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: RELAYGATE_SECTION_KEY
    For example: RELAYGATE_SANDBOX_TIMEOUT_SECONDS=5
    """
    env_prefix = "RELAYGATE_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == 'RELAYGATE_CONFIG':
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')
        typed_value = _coerce_env_value(value)

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i : i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if not matched_key:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                # Env var is longer than the config path it matched
                break

    return config


def configure_logging(config: Dict[str, Any], debug: bool = False) -> None:
    """Apply the logging section of the configuration to the relaygate logger."""
    if debug:
        level = logging.DEBUG
        fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        level_name = str(config.get('logging', {}).get('level', 'INFO')).upper()
        level = getattr(logging, level_name, logging.INFO)
        fmt = config.get('logging', {}).get('format', '%(levelname)s: %(message)s')

    logger.setLevel(level)
    for handler in logging.getLogger().handlers:
        handler.setFormatter(logging.Formatter(fmt))
    logging.getLogger().setLevel(level)
