"""Configuration loader."""

import copy
from pathlib import Path

import yaml


DEFAULT_CONFIG = {
    "api": {
        "base_url": "https://api.bitbucket.org/2.0/repositories",
        "timeout_seconds": 30,
    },
    "site": {
        "base_url": "https://bitbucket.org",
    },
    "deploy": {
        "dashboard_url": "https://octopus.{organisation}.io/app#/Spaces-1/projects/{repository}/overview",
    },
    "schedule": {
        "interval_seconds": 60,
        "guard_poll_seconds": 0.1,
    },
    "cadence": {
        "fast_seconds": 3600,
        "slow_seconds": 43200,
        "retire_seconds": 2_592_000,
        "medium_minute_step": 5,
    },
    "store": {
        "path": ".bitbucket-alerts/store.json",
    },
    "notifications": {
        "backend": "console",
    },
    "logging": {
        "level": "INFO",
    },
}


def load_config(path: str) -> dict:
    """Load config from YAML file, falling back to defaults."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config_path = Path(path)

    if config_path.exists():
        with open(config_path) as f:
            user_config = yaml.safe_load(f) or {}
        _deep_merge(config, user_config)

    # Ensure the store directory exists
    Path(config["store"]["path"]).parent.mkdir(parents=True, exist_ok=True)

    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base
