"""
Default provider registry configuration.

Builds the built-in providers from the `providers:` section of config.yaml
and registers them. To add a new provider, add a builder here and a section
to config.yaml.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from ..config import get_config, http_timeout_s, probe_timeout_s, provider_settings
from .base import MarketDataProvider
from .birdeye import BirdeyeProvider
from .registry import ProviderRegistry
from .resilience import RetryableFetch, RetryPolicy

logger = logging.getLogger(__name__)


def _build_birdeye(settings: Dict[str, Any], fetcher: RetryableFetch, timeout_s: float) -> MarketDataProvider:
    return BirdeyeProvider(
        base_url=settings.get("base_url") or "",
        api_key=settings.get("api_key"),
        priority=int(settings.get("priority", 1)),
        fetcher=fetcher,
        timeout_s=timeout_s,
    )


BUILDERS: Dict[str, Callable[[Dict[str, Any], RetryableFetch, float], MarketDataProvider]] = {
    "birdeye": _build_birdeye,
}


def create_default_registry(
    cfg: Optional[dict] = None,
    fetcher: Optional[RetryableFetch] = None,
) -> ProviderRegistry:
    """
    Create a registry with every enabled, configured built-in provider.

    Providers without an API key are skipped with a warning; any other
    registration failure propagates to the caller.
    """
    cfg = cfg or get_config()
    fetcher = fetcher or RetryableFetch(default_policy=RetryPolicy.from_config(cfg))
    timeout_s = http_timeout_s(cfg)
    registry = ProviderRegistry(probe_timeout_s=probe_timeout_s(cfg))

    for name, settings in provider_settings(cfg).items():
        if not settings.get("enabled", True):
            logger.debug("Provider %s disabled in config", name)
            continue
        builder = BUILDERS.get(name)
        if builder is None:
            logger.warning("No built-in provider named '%s'; available: %s", name, list(BUILDERS))
            continue
        if not settings.get("api_key"):
            logger.warning("Skipping provider %s: no api_key configured", name)
            continue
        registry.register_provider(builder(settings, fetcher, timeout_s))
    return registry
