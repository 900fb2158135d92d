"""
Tests for ProviderRegistry: registration, priority ordering, stable ties,
lookup, defensive copies, health aggregation and concurrent access.
"""
from __future__ import annotations

import threading
import time

import pytest

from market_fetch.errors import (
    ProviderError,
    ProviderInitializationError,
    ProviderNotFoundError,
    ProviderValidationError,
)
from market_fetch.providers.registry import ProviderRegistry
from tests.fakes.providers import (
    FakeProvider,
    FakeProviderProbeHangs,
    FakeProviderProbeRaises,
)


class TestRegistration:
    def test_register_and_get(self):
        registry = ProviderRegistry()
        provider = FakeProvider("birdeye", priority=1)
        registry.register_provider(provider)

        assert registry.get_provider("birdeye") is provider
        assert provider.init_calls == 1
        assert provider.validate_calls == 1
        assert "birdeye" in registry
        assert len(registry) == 1

    def test_validation_failure_leaves_registry_unchanged(self):
        registry = ProviderRegistry()
        registry.register_provider(FakeProvider("a", priority=1))
        before = registry.get_fallback_chain()

        with pytest.raises(ProviderValidationError, match="bad") as ei:
            registry.register_provider(FakeProvider("bad", priority=10, valid=False))

        assert ei.value.provider == "bad"
        assert registry.get_fallback_chain() == before
        assert "bad" not in registry
        assert len(registry) == 1

    def test_initialization_failure_propagates(self):
        registry = ProviderRegistry()
        cause = RuntimeError("Invalid API key")
        provider = FakeProvider("broken", init_error=cause)

        with pytest.raises(ProviderInitializationError) as ei:
            registry.register_provider(provider)

        assert ei.value.__cause__ is cause
        assert provider.validate_calls == 0
        assert registry.get_fallback_chain() == []

    def test_errors_share_base(self):
        assert issubclass(ProviderValidationError, ProviderError)
        assert issubclass(ProviderInitializationError, ProviderError)

    def test_reregister_overwrites_without_duplicates(self):
        registry = ProviderRegistry()
        first = FakeProvider("a", priority=1)
        registry.register_provider(first)
        registry.register_provider(FakeProvider("b", priority=5))
        replacement = FakeProvider("a", priority=10)
        registry.register_provider(replacement)

        assert registry.get_provider("a") is replacement
        assert registry.get_fallback_chain() == ["a", "b"]

    def test_failed_registration_can_be_retried_by_caller(self):
        registry = ProviderRegistry()
        flaky = FakeProvider("flaky", init_error=RuntimeError("timeout"))
        with pytest.raises(ProviderInitializationError):
            registry.register_provider(flaky)
        flaky._init_error = None
        registry.register_provider(flaky)
        assert registry.get_fallback_chain() == ["flaky"]


class TestLookup:
    def test_missing_provider_raises(self):
        registry = ProviderRegistry()
        registry.register_provider(FakeProvider("a"))
        with pytest.raises(ProviderNotFoundError, match="nope"):
            registry.get_provider("nope")

    def test_not_found_is_a_lookup_error(self):
        with pytest.raises(LookupError):
            ProviderRegistry().get_provider("missing")


class TestFallbackChain:
    def test_sorted_by_priority_descending(self):
        registry = ProviderRegistry()
        registry.register_provider(FakeProvider("low", priority=1))
        registry.register_provider(FakeProvider("high", priority=10))
        registry.register_provider(FakeProvider("mid", priority=5))
        assert registry.get_fallback_chain() == ["high", "mid", "low"]

    def test_equal_priority_keeps_registration_order(self):
        registry = ProviderRegistry()
        for name in ["first", "second", "third"]:
            registry.register_provider(FakeProvider(name, priority=1))
        registry.register_provider(FakeProvider("top", priority=2))
        registry.register_provider(FakeProvider("fourth", priority=1))
        assert registry.get_fallback_chain() == ["top", "first", "second", "third", "fourth"]

    def test_negative_priorities(self):
        registry = ProviderRegistry()
        registry.register_provider(FakeProvider("neg", priority=-1))
        registry.register_provider(FakeProvider("zero", priority=0))
        assert registry.get_fallback_chain() == ["zero", "neg"]

    def test_returns_defensive_copy(self):
        registry = ProviderRegistry()
        registry.register_provider(FakeProvider("a", priority=2))
        registry.register_provider(FakeProvider("b", priority=1))

        chain = registry.get_fallback_chain()
        chain.reverse()
        chain.append("injected")

        assert registry.get_fallback_chain() == ["a", "b"]

    def test_empty_registry(self):
        assert ProviderRegistry().get_fallback_chain() == []

    def test_provider_names_in_registration_order(self):
        registry = ProviderRegistry()
        registry.register_provider(FakeProvider("low", priority=1))
        registry.register_provider(FakeProvider("high", priority=9))
        assert registry.provider_names == ["low", "high"]


class TestHealthCheck:
    def test_probe_failure_is_isolated(self):
        registry = ProviderRegistry()
        registry.register_provider(FakeProvider("healthy", priority=3, healthy=True))
        registry.register_provider(FakeProviderProbeRaises("exploding", priority=2))
        registry.register_provider(FakeProvider("down", priority=1, healthy=False))

        status = registry.health_check()

        assert status == {"healthy": True, "exploding": False, "down": False}

    def test_slow_probe_times_out(self):
        registry = ProviderRegistry()
        hanging = FakeProviderProbeHangs("slow", priority=2)
        registry.register_provider(hanging)
        registry.register_provider(FakeProvider("fast", priority=1))
        try:
            t0 = time.monotonic()
            status = registry.health_check(timeout_s=0.2)
            elapsed = time.monotonic() - t0
        finally:
            hanging.release.set()

        assert status == {"slow": False, "fast": True}
        assert elapsed < 2.0

    def test_default_probe_timeout_from_constructor(self):
        registry = ProviderRegistry(probe_timeout_s=0.1)
        hanging = FakeProviderProbeHangs("slow")
        registry.register_provider(hanging)
        try:
            assert registry.health_check() == {"slow": False}
        finally:
            hanging.release.set()

    def test_not_cached_between_calls(self):
        registry = ProviderRegistry()
        provider = FakeProvider("a", healthy=True)
        registry.register_provider(provider)

        assert registry.health_check() == {"a": True}
        provider.healthy = False
        assert registry.health_check() == {"a": False}
        assert provider.health_calls == 2

    def test_empty_registry(self):
        assert ProviderRegistry().health_check() == {}


class TestConcurrency:
    def test_readers_never_see_partial_chain(self):
        registry = ProviderRegistry()
        n_providers = 50
        observed = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                observed.append(registry.get_fallback_chain())

        def writer(start: int):
            for i in range(start, n_providers, 2):
                registry.register_provider(FakeProvider(f"p{i:02d}", priority=i % 5))

        readers = [threading.Thread(target=reader) for _ in range(3)]
        writers = [threading.Thread(target=writer, args=(s,)) for s in (0, 1)]
        for t in readers + writers:
            t.start()
        for t in writers:
            t.join()
        stop.set()
        for t in readers:
            t.join()

        final = registry.get_fallback_chain()
        assert sorted(final) == [f"p{i:02d}" for i in range(n_providers)]
        priorities = {f"p{i:02d}": i % 5 for i in range(n_providers)}
        for chain in observed:
            assert len(chain) == len(set(chain))
            prios = [priorities[n] for n in chain]
            assert prios == sorted(prios, reverse=True)
