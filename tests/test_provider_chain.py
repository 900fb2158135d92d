"""
Tests for caller-level fallback over the registry's chain.

Verifies that:
- The highest-priority provider is used when healthy
- Fallback providers are tried in chain order when earlier ones fail
- Total failure raises with every provider's error
- Providers lacking an operation are skipped
"""
from __future__ import annotations

import pytest

from market_fetch.errors import AllProvidersFailedError
from market_fetch.providers.chain import FallbackFetcher
from market_fetch.providers.registry import ProviderRegistry
from tests.fakes.providers import (
    FakeProvider,
    FakeProviderAlwaysFail,
    FakeProviderFailNThenSucceed,
    PriceOnlyProvider,
)


def _registry(*providers) -> ProviderRegistry:
    registry = ProviderRegistry()
    for p in providers:
        registry.register_provider(p)
    return registry


class TestFallbackFetcher:
    def test_primary_provider_used_when_healthy(self):
        primary = FakeProvider("primary", priority=2, price=50000.0)
        fallback = FakeProvider("fallback", priority=1, price=50001.0)
        fetcher = FallbackFetcher(_registry(fallback, primary))

        price = fetcher.get_price("So111")

        assert price.source == "primary"
        assert price.value == 50000.0
        assert primary.call_count == 1
        assert fallback.call_count == 0

    def test_fallback_used_when_primary_fails(self):
        primary = FakeProviderAlwaysFail("primary", priority=2)
        fallback = FakeProvider("fallback", priority=1, price=50001.0)
        fetcher = FallbackFetcher(_registry(primary, fallback))

        name, price = fetcher.call("get_price", "So111")

        assert name == "fallback"
        assert price.value == 50001.0
        assert primary.call_count == 1

    def test_recovered_primary_is_used_again(self):
        flaky = FakeProviderFailNThenSucceed("flaky", priority=2, fail_times=1, price=10.0)
        backup = FakeProvider("backup", priority=1, price=11.0)
        fetcher = FallbackFetcher(_registry(flaky, backup))

        assert fetcher.get_price("x").source == "backup"
        assert fetcher.get_price("x").source == "flaky"

    def test_all_fail_raises_with_each_error(self):
        fetcher = FallbackFetcher(
            _registry(FakeProviderAlwaysFail("p1", priority=2), FakeProviderAlwaysFail("p2", priority=1))
        )

        with pytest.raises(AllProvidersFailedError, match="All providers failed for get_price") as ei:
            fetcher.get_price("So111")

        assert list(ei.value.errors) == ["p1", "p2"]
        assert "always fails" in ei.value.errors["p1"]

    def test_empty_registry_raises(self):
        with pytest.raises(AllProvidersFailedError, match="no providers registered"):
            FallbackFetcher(ProviderRegistry()).search_tokens("SOL")

    def test_skips_providers_without_operation(self):
        price_only = PriceOnlyProvider("price_only", priority=5)
        full = FakeProvider("full", priority=1)
        fetcher = FallbackFetcher(_registry(price_only, full))

        tokens = fetcher.search_tokens("sol")

        assert tokens[0].symbol == "SOL"
        assert full.call_count == 1

    def test_picks_up_late_registrations(self):
        registry = ProviderRegistry()
        fetcher = FallbackFetcher(registry)
        registry.register_provider(FakeProvider("late", priority=1))

        ohlcv = fetcher.get_ohlcv("So111", "1h", limit=2)

        assert ohlcv.source == "late"
        assert len(ohlcv) == 2

    def test_order_book_falls_back(self):
        primary = FakeProviderAlwaysFail("primary", priority=2)
        backup = FakeProvider("backup", priority=1, price=20.0)
        fetcher = FallbackFetcher(_registry(primary, backup))

        book = fetcher.get_order_book("So111", depth=10)

        assert book.source == "backup"
        assert book.asks[0].price == 21.0
        assert book.bids[0].price == 19.0
        assert primary.call_count == 1

    def test_order_book_skips_providers_without_it(self):
        fetcher = FallbackFetcher(_registry(PriceOnlyProvider("price_only", priority=5)))
        with pytest.raises(AllProvidersFailedError):
            fetcher.get_order_book("So111")
