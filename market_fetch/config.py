"""
Load config from config.yaml with optional env overrides.
Single source of truth for retry defaults, HTTP timeout, health probe timeout
and per-provider endpoints, API keys and priorities.
"""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# Defaults if no YAML or env
_DEFAULTS: Dict[str, Any] = {
    "retry": {
        "max_attempts": 3,
        "initial_delay_s": 1.0,
        "max_delay_s": 10.0,
        "backoff_factor": 2.0,
    },
    "http": {"timeout_s": 15.0},
    "health": {"probe_timeout_s": 5.0},
    "providers": {
        "birdeye": {
            "enabled": True,
            "base_url": "https://public-api.birdeye.so",
            "api_key": None,
            "priority": 1,
        },
    },
}


def _config_yaml_path() -> Path:
    """config.yaml lives at repo root (parent of package dir) unless MARKET_FETCH_CONFIG points elsewhere."""
    override = os.environ.get("MARKET_FETCH_CONFIG", "").strip()
    if override:
        return Path(override)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    config_path = _config_yaml_path()
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _env_overrides() -> dict:
    overrides: dict = {}
    attempts = os.environ.get("MARKET_FETCH_MAX_ATTEMPTS")
    if attempts:
        overrides.setdefault("retry", {})["max_attempts"] = int(attempts)
    probe = os.environ.get("MARKET_FETCH_PROBE_TIMEOUT_S")
    if probe:
        overrides.setdefault("health", {})["probe_timeout_s"] = float(probe)
    api_key = os.environ.get("BIRDEYE_API_KEY")
    if api_key:
        overrides.setdefault("providers", {}).setdefault("birdeye", {})["api_key"] = api_key
    base_url = os.environ.get("BIRDEYE_BASE_URL")
    if base_url:
        overrides.setdefault("providers", {}).setdefault("birdeye", {})["base_url"] = base_url
    return overrides


def get_config() -> dict:
    """Return merged config: defaults <- config.yaml <- env."""
    merged = _deep_merge(copy.deepcopy(_DEFAULTS), _load_yaml())
    merged = _deep_merge(merged, _env_overrides())
    return merged


# Convenience accessors
def retry_settings(cfg: Optional[dict] = None) -> Dict[str, Any]:
    return dict((cfg or get_config())["retry"])


def http_timeout_s(cfg: Optional[dict] = None) -> float:
    return float((cfg or get_config())["http"]["timeout_s"])


def probe_timeout_s(cfg: Optional[dict] = None) -> float:
    return float((cfg or get_config())["health"]["probe_timeout_s"])


def provider_settings(cfg: Optional[dict] = None) -> Dict[str, Dict[str, Any]]:
    providers = (cfg or get_config()).get("providers") or {}
    return {name: dict(v or {}) for name, v in providers.items()}
