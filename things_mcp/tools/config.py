"""Things MCP configuration loader.

Config lives at ~/.things-mcp/config.json:

    {
        "auth_token": "...",
        "reschedule": {"days_threshold": 7, "buffer_days": 3}
    }

The THINGS_AUTH_TOKEN environment variable takes precedence over the
file's auth_token.
"""
import json
import os
from pathlib import Path
from typing import Optional

AUTH_TOKEN_ENV = "THINGS_AUTH_TOKEN"

_config_cache = None


def get_config_path() -> Path:
    return Path.home() / ".things-mcp" / "config.json"


def get_config() -> dict:
    """Load config from ~/.things-mcp/config.json with caching."""
    global _config_cache
    if _config_cache is None:
        config_path = get_config_path()
        if config_path.exists():
            with open(config_path) as f:
                _config_cache = json.load(f)
        else:
            _config_cache = {}
    return _config_cache


def clear_config_cache():
    """Invalidate the cached config, forcing a re-read on next access."""
    global _config_cache
    _config_cache = None


def get_fallback_auth_token() -> Optional[str]:
    """Process-wide auth token: THINGS_AUTH_TOKEN, then config auth_token."""
    env_token = os.environ.get(AUTH_TOKEN_ENV, "").strip()
    if env_token:
        return env_token
    config_token = str(get_config().get("auth_token") or "").strip()
    return config_token or None


def resolve_auth_token(explicit: Optional[str], fallback: Optional[str]) -> Optional[str]:
    """Pick the explicit token if non-empty, otherwise the fallback.

    Returns None when neither is usable.
    """
    for candidate in (explicit, fallback):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def get_reschedule_config() -> dict:
    """Get reschedule defaults merged over built-in values.

    Returns config dict with keys: days_threshold, buffer_days.
    Backward-compatible: configs without 'reschedule' section get defaults.
    """
    config = get_config()
    defaults = {
        "days_threshold": 7,
        "buffer_days": 3,
    }
    return {**defaults, **config.get("reschedule", {})}
