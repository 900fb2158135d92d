"""
Provider fallback: caller-level orchestration over the registry's chain.

Tries providers in fallback-chain order. Each provider already retries its
own requests through RetryableFetch, so a provider that raises here is
treated as failed for this call and the next one is tried.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from ..errors import AllProvidersFailedError
from .base import OHLCVData, OrderBookData, PriceData, TokenInfo
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)


class FallbackFetcher:
    """
    Ordered fallback across every provider registered in a ProviderRegistry.

    The chain is re-read on every call, so providers registered later are
    picked up without rebuilding the fetcher.
    """

    def __init__(self, registry: ProviderRegistry) -> None:
        self._registry = registry

    def call(self, operation: str, *args: Any, **kwargs: Any) -> Tuple[str, Any]:
        """
        Invoke `operation` on each provider in chain order.

        Returns (provider_name, result) from the first provider that succeeds.
        Providers without the operation are skipped.
        """
        errors: Dict[str, str] = {}
        for name in self._registry.get_fallback_chain():
            provider = self._registry.get_provider(name)
            method = getattr(provider, operation, None)
            if not callable(method):
                logger.debug("Provider %s does not support %s; skipping", name, operation)
                continue
            try:
                result = method(*args, **kwargs)
            except Exception as exc:
                msg = f"{type(exc).__name__}: {exc}"
                errors[name] = msg
                logger.warning("Provider %s failed %s, trying next: %s", name, operation, msg)
                continue
            if errors:
                logger.info("%s served by fallback provider %s", operation, name)
            return name, result

        raise AllProvidersFailedError(operation, errors)

    def get_price(self, token_address: str) -> PriceData:
        _, price = self.call("get_price", token_address)
        return price

    def get_ohlcv(self, token_address: str, timeframe: str, limit: int = 100) -> OHLCVData:
        _, ohlcv = self.call("get_ohlcv", token_address, timeframe, limit)
        return ohlcv

    def search_tokens(self, query: str) -> List[TokenInfo]:
        _, tokens = self.call("search_tokens", query)
        return tokens

    def get_order_book(self, token_address: str, depth: int = 100) -> OrderBookData:
        _, book = self.call("get_order_book", token_address, depth)
        return book
