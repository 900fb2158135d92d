"""
Birdeye market-data provider.

Authenticated REST API (X-API-KEY header):
  GET {base_url}/api/v1/auth/verify
  GET {base_url}/api/v1/token/price/{address}
  GET {base_url}/api/v1/token/ohlcv/{address}?interval=&limit=
  GET {base_url}/api/v1/token/search?query=
  GET {base_url}/api/v1/token/orderbook/{address}?depth=
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from .base import (
    TIMEFRAMES,
    OHLCVCandle,
    OHLCVData,
    OrderBookData,
    OrderBookLevel,
    PriceData,
    TokenInfo,
)
from .resilience import HTTP_TIMEOUT_S, RetryableFetch, TtlCache

logger = logging.getLogger(__name__)

CACHE_TTL_S = 30.0


def _unwrap(payload: Any) -> Any:
    """Responses are either the bare object or wrapped as {"success": ..., "data": ...}."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _to_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _to_int(x: Any) -> Optional[int]:
    if x is None:
        return None
    try:
        return int(x)
    except (TypeError, ValueError):
        return None


def _levels(rows: Any) -> Tuple[OrderBookLevel, ...]:
    if not isinstance(rows, list):
        raise RuntimeError(f"Unexpected Birdeye order book side type: {type(rows)}")
    return tuple(
        OrderBookLevel(price=_to_float(r.get("price")) or 0.0, size=_to_float(r.get("size")) or 0.0)
        for r in rows
        if isinstance(r, dict)
    )


class BirdeyeProvider:
    """Fetch prices, candles, order books and token search results from Birdeye."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        priority: int = 1,
        *,
        fetcher: Optional[RetryableFetch] = None,
        cache_ttl_s: float = CACHE_TTL_S,
        timeout_s: float = HTTP_TIMEOUT_S,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._api_key = api_key
        self._priority = priority
        self._fetcher = fetcher or RetryableFetch()
        self._cache = TtlCache(ttl_seconds=cache_ttl_s)
        self._timeout_s = timeout_s

    @property
    def name(self) -> str:
        return "birdeye"

    @property
    def priority(self) -> int:
        return self._priority

    def initialize(self) -> None:
        if not self.validate_config():
            # Nothing to verify; registration reports the missing config.
            return
        self._verify_api_key()

    def validate_config(self) -> bool:
        if not self._base_url or not self._api_key:
            logger.error("Birdeye provider missing required configuration (base_url, api_key)")
            return False
        return True

    def health_check(self) -> bool:
        try:
            self._verify_api_key()
        except Exception as exc:
            logger.error("Birdeye health check failed: %s", exc)
            return False
        return True

    def clear_cache(self) -> None:
        self._cache.clear()

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        resp = self._fetcher.fetch(
            f"{self._base_url}{path}",
            {
                "headers": {"X-API-KEY": self._api_key or "", "accept": "application/json"},
                "params": params,
                "timeout_s": self._timeout_s,
            },
        )
        return resp.json()

    def _verify_api_key(self) -> None:
        data = self._get("/api/v1/auth/verify")
        if not isinstance(data, dict) or not data.get("success"):
            raise RuntimeError("Invalid Birdeye API key")

    def get_price(self, token_address: str) -> PriceData:
        key = f"price:{token_address}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = _unwrap(self._get(f"/api/v1/token/price/{token_address}"))
        value = _to_float(data.get("value")) if isinstance(data, dict) else None
        if value is None:
            raise RuntimeError(f"Birdeye price response missing value for {token_address}")
        price = PriceData(
            value=value,
            timestamp_ms=(_to_int(data.get("updateUnixTime")) or 0) * 1000,
            source=self.name,
        )
        self._cache.put(key, price)
        return price

    def get_ohlcv(self, token_address: str, timeframe: str, limit: int = 100) -> OHLCVData:
        if timeframe not in TIMEFRAMES:
            raise ValueError(f"Unsupported timeframe '{timeframe}'. Expected one of {TIMEFRAMES}")
        key = f"ohlcv:{token_address}:{timeframe}:{limit}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = _unwrap(
            self._get(
                f"/api/v1/token/ohlcv/{token_address}",
                {"interval": timeframe, "limit": str(limit)},
            )
        )
        if isinstance(data, dict):
            data = data.get("items")
        if not isinstance(data, list):
            raise RuntimeError(f"Unexpected Birdeye OHLCV response type: {type(data)}")

        candles = tuple(
            OHLCVCandle(
                timestamp_ms=(_to_int(c.get("unixTime")) or 0) * 1000,
                open=_to_float(c.get("open")) or 0.0,
                high=_to_float(c.get("high")) or 0.0,
                low=_to_float(c.get("low")) or 0.0,
                close=_to_float(c.get("close")) or 0.0,
                volume=_to_float(c.get("volume")) or 0.0,
            )
            for c in data
            if isinstance(c, dict)
        )
        ohlcv = OHLCVData(candles=candles, source=self.name)
        self._cache.put(key, ohlcv)
        return ohlcv

    def search_tokens(self, query: str) -> List[TokenInfo]:
        key = f"search:{query}"
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        data = _unwrap(self._get("/api/v1/token/search", {"query": query}))
        if isinstance(data, dict):
            data = data.get("tokens") or data.get("items")
        if not isinstance(data, list):
            raise RuntimeError(f"Unexpected Birdeye search response type: {type(data)}")

        tokens = [
            TokenInfo(
                address=t.get("address", ""),
                symbol=t.get("symbol", ""),
                name=t.get("name", ""),
                decimals=_to_int(t.get("decimals")),
                chain_id=_to_int(t.get("chainId")),
                logo_uri=t.get("logoURI"),
                tags=tuple(t.get("tags") or ()),
            )
            for t in data
            if isinstance(t, dict) and t.get("address")
        ]
        self._cache.put(key, tuple(tokens))
        return tokens

    def get_order_book(self, token_address: str, depth: int = 100) -> OrderBookData:
        key = f"orderbook:{token_address}:{depth}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = _unwrap(
            self._get(f"/api/v1/token/orderbook/{token_address}", {"depth": str(depth)})
        )
        if not isinstance(data, dict) or data.get("asks") is None or data.get("bids") is None:
            raise RuntimeError(f"Birdeye order book response missing asks/bids for {token_address}")

        book = OrderBookData(
            asks=_levels(data["asks"]),
            bids=_levels(data["bids"]),
            timestamp_ms=(_to_int(data.get("updateUnixTime")) or 0) * 1000,
            source=self.name,
        )
        self._cache.put(key, book)
        return book

