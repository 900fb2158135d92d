"""
Provider interface and data contracts.

Every market-data provider implements MarketDataProvider: a fixed capability
set (initialize, validate_config, health_check) plus the data operations
(get_price, get_ohlcv, search_tokens, get_order_book). Normalized results are
returned via frozen dataclasses for immutability and type safety.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple, runtime_checkable

TIMEFRAMES = ("1m", "5m", "15m", "30m", "1h", "4h", "1d", "1w")


@dataclass(frozen=True)
class PriceData:
    """Point-in-time token price from one provider."""

    value: float
    timestamp_ms: int
    source: str


@dataclass(frozen=True)
class OHLCVCandle:
    timestamp_ms: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class OHLCVData:
    """Candles for one token/timeframe, oldest first as returned by the provider."""

    candles: Tuple[OHLCVCandle, ...]
    source: str

    def __len__(self) -> int:
        return len(self.candles)


@dataclass(frozen=True)
class TokenInfo:
    address: str
    symbol: str
    name: str
    decimals: Optional[int] = None
    chain_id: Optional[int] = None
    logo_uri: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class OrderBookLevel:
    price: float
    size: float


@dataclass(frozen=True)
class OrderBookData:
    """Order book snapshot; asks and bids in the order the provider returned them."""

    asks: Tuple[OrderBookLevel, ...]
    bids: Tuple[OrderBookLevel, ...]
    timestamp_ms: int
    source: str


@runtime_checkable
class MarketDataProvider(Protocol):
    """Protocol for registry-managed market-data providers."""

    @property
    def name(self) -> str: ...

    @property
    def priority(self) -> int: ...

    def initialize(self) -> None:
        """Prepare the provider (e.g. verify credentials). Raise on failure."""
        ...

    def validate_config(self) -> bool:
        """Return False when required configuration is missing or malformed."""
        ...

    def health_check(self) -> bool:
        """Point-in-time reachability probe."""
        ...

    def get_price(self, token_address: str) -> PriceData: ...

    def get_ohlcv(self, token_address: str, timeframe: str, limit: int = 100) -> OHLCVData: ...

    def search_tokens(self, query: str) -> List[TokenInfo]: ...

    def get_order_book(self, token_address: str, depth: int = 100) -> OrderBookData: ...
