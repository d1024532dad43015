import os
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "config.yaml"

DEFAULTS = {
    "strava": {
        "per_page": 100,
        "max_pages": 50,
        "refresh_margin_s": 300,
        "photo_size": 600,
    },
    "photos": {"max_workers": 4},
    "owner": {"default": None},
    "review": {"host": "127.0.0.1", "port": 5050},
}


def _expand(value):
    """Recursively expand ~ and env vars in string values."""
    if isinstance(value, str):
        return os.path.expandvars(os.path.expanduser(value))
    if isinstance(value, dict):
        return {k: _expand(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand(v) for v in value]
    return value


def _with_defaults(raw: dict) -> dict:
    merged = {}
    for section, values in DEFAULTS.items():
        merged[section] = {**values, **(raw.get(section) or {})}
    for section, values in raw.items():
        if section not in merged:
            merged[section] = values
    return merged


def load_config(path=None):
    """Load YAML config, expanding ~ and $ENV_VARS in all string values."""
    path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return _with_defaults(_expand(raw))


def setting(config, section: str, key: str):
    """Read a config value, falling back to the built-in default."""
    if config and key in (config.get(section) or {}):
        return config[section][key]
    return DEFAULTS.get(section, {}).get(key)
