"""
Top-level public API surface. Stable facades only.
Canonical entrypoint: import market_fetch; use market_fetch.providers and market_fetch.errors.
Does not import the doctor CLI.
"""

from __future__ import annotations

from . import errors, providers
from ._version import __version__
from .providers import FallbackFetcher, ProviderRegistry, RetryableFetch, RetryPolicy, fetch_with_retry

# Do not add exports without updating __all__.
__all__ = [
    "__version__",
    "errors",
    "providers",
    "FallbackFetcher",
    "ProviderRegistry",
    "RetryableFetch",
    "RetryPolicy",
    "fetch_with_retry",
]
