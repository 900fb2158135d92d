"""
Provider registry: central catalog of available providers.

Providers are initialized, validated and then stored by name. The registry
derives a fallback chain (names sorted by priority, highest first, ties in
registration order) and aggregates point-in-time health. It does not retry
across providers; see chain.FallbackFetcher for that.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Optional

from ..errors import (
    ProviderInitializationError,
    ProviderNotFoundError,
    ProviderValidationError,
)
from .base import MarketDataProvider

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_S = 5.0


class ProviderRegistry:
    """
    One logical registry per process, constructed explicitly and passed to
    whatever needs it.

    Usage:
        registry = ProviderRegistry()
        registry.register_provider(BirdeyeProvider(base_url, api_key, priority=2))
        registry.register_provider(other_provider)

        for name in registry.get_fallback_chain():
            provider = registry.get_provider(name)
    """

    def __init__(self, probe_timeout_s: float = DEFAULT_PROBE_TIMEOUT_S) -> None:
        self._providers: Dict[str, MarketDataProvider] = {}
        self._fallback_chain: List[str] = []
        self._lock = threading.RLock()
        self._probe_timeout_s = probe_timeout_s

    def register_provider(self, provider: MarketDataProvider) -> None:
        """
        Initialize, validate and store a provider, then recompute the chain.

        Raises ProviderInitializationError if initialize() raises and
        ProviderValidationError if validate_config() returns False; in both
        cases the registry is left unchanged.
        """
        name = provider.name
        try:
            provider.initialize()
        except Exception as exc:
            logger.error("Failed to initialize provider %s: %s", name, exc)
            raise ProviderInitializationError(
                f"Provider initialization failed: {name}: {exc}", provider=name
            ) from exc

        if not provider.validate_config():
            logger.error("Provider validation failed: %s", name)
            raise ProviderValidationError(f"Provider validation failed: {name}", provider=name)

        with self._lock:
            self._providers[name] = provider
            self._update_fallback_chain()
            chain = list(self._fallback_chain)
        logger.info(
            "Registered provider %s (priority=%s); fallback chain: %s",
            name, provider.priority, chain,
        )

    def get_provider(self, name: str) -> MarketDataProvider:
        with self._lock:
            provider = self._providers.get(name)
            if provider is None:
                raise ProviderNotFoundError(
                    f"Provider not found: '{name}'. Available: {list(self._providers)}",
                    provider=name,
                )
            return provider

    def get_fallback_chain(self) -> List[str]:
        """Provider names in the order they should be tried (a fresh list)."""
        with self._lock:
            return list(self._fallback_chain)

    @property
    def provider_names(self) -> List[str]:
        """Provider names in registration order."""
        with self._lock:
            return list(self._providers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._providers

    def _update_fallback_chain(self) -> None:
        # sorted() is stable, so dict insertion order breaks priority ties.
        self._fallback_chain = [
            p.name
            for p in sorted(self._providers.values(), key=lambda p: p.priority, reverse=True)
        ]

    def health_check(self, timeout_s: Optional[float] = None) -> Dict[str, bool]:
        """
        Probe every registered provider concurrently.

        A probe that raises or does not finish within timeout_s is reported
        as False; it never aborts the other probes. Entries follow the
        fallback chain order.
        """
        timeout = self._probe_timeout_s if timeout_s is None else timeout_s
        with self._lock:
            names = list(self._fallback_chain)
            providers = [self._providers[n] for n in names]
        if not providers:
            return {}

        results: Dict[str, bool] = {}
        executor = ThreadPoolExecutor(
            max_workers=len(providers), thread_name_prefix="health-probe"
        )
        try:
            futures = {executor.submit(p.health_check): n for p, n in zip(providers, names)}
            done, _ = wait(futures, timeout=timeout)
            for future, name in futures.items():
                if future not in done:
                    logger.error("Provider health check timed out after %.1fs: %s", timeout, name)
                    results[name] = False
                    continue
                exc = future.exception()
                if exc is not None:
                    logger.error("Provider health check failed: %s: %s", name, exc)
                    results[name] = False
                else:
                    results[name] = bool(future.result())
        finally:
            # Abandon probes that overran; their threads finish on their own.
            executor.shutdown(wait=False, cancel_futures=True)
        return {n: results[n] for n in names}
