#!/usr/bin/env python3
"""
Migration utilities - shared helper functions.
"""

import copy
import os
from pathlib import Path

import yaml

from ..errors import ConfigurationError

DEFAULT_CONFIG = {
    'control_plane': {
        'backend': 'rack',
        'url': None,
        'password_env': 'RACK_PASSWORD',
        'state_dir': './rack-state',
        'request_timeout': 60,
    },
    'polling': {
        'interval': 2,
        'timeout': 1800,
    },
    'storage': {
        'backend': 'local',
        'bundle_dir': './exports',
    },
    's3': {
        'region': 'us-east-1',
        'prefix': 'exports/',
    },
}


def load_yaml(file_path):
    with open(file_path, 'r') as f:
        return yaml.safe_load(f)


def deep_merge(base, override):
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(config_path=None):
    """
    Load configuration with optional local overrides.
    - Default: config/migration-config.yaml merged over built-in defaults
    - MIGRATION_ENV=local: merges config/migration-config.local.yaml overrides
    - config_path: explicit file replaces the default one
    """
    root = Path(__file__).parent.parent.parent
    base_path = Path(config_path) if config_path else root / "config" / "migration-config.yaml"
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path and not base_path.exists():
        raise ConfigurationError(f"Config file not found: {base_path}")
    if base_path.exists():
        config = deep_merge(config, load_yaml(base_path) or {})

    env = os.environ.get('MIGRATION_ENV', '').strip()
    if env == 'local':
        override_path = base_path.parent / "migration-config.local.yaml"
        if override_path.exists():
            config = deep_merge(config, load_yaml(override_path) or {})

    return config


def get_rack_password(cp_config):
    """Get rack password from the environment variable named in config."""
    password_env = cp_config.get('password_env')
    if not password_env:
        raise ConfigurationError("Missing control_plane.password_env in config")

    password = os.environ.get(password_env)
    if not password:
        raise ConfigurationError(f"Credentials not set: export {password_env}='...'")
    return password


def parse_env(text):
    """Parse KEY=VALUE lines into a dict; blank lines are ignored."""
    env = {}
    for number, line in enumerate(text.splitlines(), 1):
        if not line.strip():
            continue
        key, sep, value = line.partition('=')
        if not sep or not key.strip():
            raise ValueError(f"line {number}: expected KEY=VALUE")
        env[key.strip()] = value
    return env


def parse_parameters(pairs):
    """Parse CLI KEY=VALUE arguments into a parameter mapping."""
    try:
        return parse_env('\n'.join(pairs))
    except ValueError as e:
        raise ConfigurationError(f"Invalid parameter: {e}") from e


def start_step(message):
    print(f"{message}... ", end='', flush=True)


def step_ok(detail=None):
    print(f"OK, {detail}" if detail else "OK")
