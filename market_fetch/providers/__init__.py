"""
Provider architecture for market-data fetching.

Interchangeable providers are registered in a ProviderRegistry, which orders
them into a priority-based fallback chain and aggregates health. Every
outbound request goes through RetryableFetch (classified retry with
exponential backoff); FallbackFetcher walks the chain at the caller level.
"""

from __future__ import annotations

from .base import MarketDataProvider, OHLCVCandle, OHLCVData, PriceData, TokenInfo
from .birdeye import BirdeyeProvider
from .chain import FallbackFetcher
from .defaults import create_default_registry
from .registry import ProviderRegistry
from .resilience import (
    FatalFailure,
    RequestOptions,
    RetryableFailure,
    RetryableFetch,
    RetryPolicy,
    Success,
    TtlCache,
    build_url,
    fetch_with_retry,
)

__all__ = [
    "MarketDataProvider",
    "PriceData",
    "OHLCVCandle",
    "OHLCVData",
    "TokenInfo",
    "BirdeyeProvider",
    "FallbackFetcher",
    "ProviderRegistry",
    "create_default_registry",
    "RetryPolicy",
    "RequestOptions",
    "RetryableFetch",
    "Success",
    "RetryableFailure",
    "FatalFailure",
    "TtlCache",
    "build_url",
    "fetch_with_retry",
]
