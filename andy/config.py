"""
Config loader for Andy.
Reads config.yaml once at startup. All other modules import from here.
${ENV_VAR} references are resolved after .env has been loaded, so API keys
never need to live in the YAML file itself.
"""

import copy
import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: dict | None = None

# Used for any section missing from config.yaml
DEFAULTS: dict = {
    "server": {"host": "0.0.0.0", "port": 8000},
    "providers": {},
    "rate_limit": {"max_requests": 50, "per_minute": 1.0, "scope": "global"},
    "cache": {"max_size": 1000, "ttl_ms": 3_600_000},
    "resilience": {
        "retry_attempts": 3,
        "timeout_ms": 30_000,
        "backoff_base": 0.0,
        "backoff_max": 10.0,
    },
    "context": {"max_history": 50, "prompt_history": 3},
    "sessions": {"max_age_days": 30, "list_limit": 10},
    "routing": {},
    "validation": {"enabled": True, "max_length": 4000},
    "intent": {},
    "storage": {"backend": "memory", "sqlite_path": "./data/andy.db"},
    "logging": {"level": "INFO"},
}


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} patterns with actual environment variable values."""
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")
    return re.sub(r"\$\{(\w+)\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def _merge_defaults(raw: dict) -> dict:
    """Fill in missing sections/keys from DEFAULTS (one level deep)."""
    merged = copy.deepcopy(DEFAULTS)
    for key, value in (raw or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None, reload: bool = False) -> dict:
    """Load and cache config from YAML file."""
    global _config
    if _config is not None and not reload and path is None:
        return _config

    config_path = Path(path) if path else _CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    _config = _merge_defaults(_walk_and_resolve(raw))
    return _config


def get_config() -> dict:
    """Return cached base config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def redact(cfg: dict) -> dict:
    """Copy of cfg with API keys and other secrets masked (for display)."""
    def _walk(obj, key=""):
        if isinstance(obj, dict):
            return {k: _walk(v, k) for k, v in obj.items()}
        if isinstance(obj, list):
            return [_walk(v) for v in obj]
        if isinstance(obj, str) and obj and any(
            s in key.lower() for s in ("key", "secret", "token", "password")
        ):
            return "***redacted***"
        return obj
    return _walk(cfg)
