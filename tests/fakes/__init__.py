"""Fake providers and HTTP doubles for registry, fetch and adapter tests (no live network)."""

from .providers import (
    FakeClock,
    FakeProvider,
    FakeProviderAlwaysFail,
    FakeProviderFailNThenSucceed,
    FakeProviderProbeHangs,
    FakeProviderProbeRaises,
    FakeResponse,
    FakeSession,
    PriceOnlyProvider,
)

__all__ = [
    "FakeClock",
    "FakeProvider",
    "FakeProviderAlwaysFail",
    "FakeProviderFailNThenSucceed",
    "FakeProviderProbeHangs",
    "FakeProviderProbeRaises",
    "FakeResponse",
    "FakeSession",
    "PriceOnlyProvider",
]
