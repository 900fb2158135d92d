"""
Resilience primitives: retry policy with exponential backoff, attempt
classification, the retryable HTTP fetch and a small TTL cache.

Every outbound provider request goes through RetryableFetch. Transient
failures (network errors, 408, 429, 5xx) are retried up to the policy limit;
other 4xx responses and unclassifiable exceptions fail after one attempt.
"""
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Mapping, Optional, Union
from urllib.parse import urlencode, urlsplit, urlunsplit

import requests

from ..errors import DeadlineExceededError, FatalRequestError, RetriesExhaustedError

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_S = 15.0

# Exceptions raised before any HTTP status is available that are worth retrying.
NETWORK_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry with exponential backoff."""

    max_attempts: int = 3
    initial_delay_s: float = 1.0
    max_delay_s: float = 10.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ValueError(f"max_attempts must be an int, got {self.max_attempts!r}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay_s < 0:
            raise ValueError(f"initial_delay_s must be >= 0, got {self.initial_delay_s}")
        if self.max_delay_s < self.initial_delay_s:
            raise ValueError(
                f"max_delay_s ({self.max_delay_s}) must be >= initial_delay_s ({self.initial_delay_s})"
            )
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given (1-based) failed attempt."""
        return min(self.initial_delay_s * (self.backoff_factor ** (attempt - 1)), self.max_delay_s)

    def with_overrides(self, **overrides: Any) -> "RetryPolicy":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_config(cls, cfg: Optional[dict] = None) -> "RetryPolicy":
        from ..config import retry_settings

        s = retry_settings(cfg)
        return cls(
            max_attempts=int(s["max_attempts"]),
            initial_delay_s=float(s["initial_delay_s"]),
            max_delay_s=float(s["max_delay_s"]),
            backoff_factor=float(s["backoff_factor"]),
        )


@dataclass(frozen=True)
class Success:
    response: requests.Response


@dataclass(frozen=True)
class RetryableFailure:
    reason: str
    status_code: Optional[int] = None
    retry_after_s: Optional[float] = None
    response: Optional[requests.Response] = None
    exception: Optional[BaseException] = None


@dataclass(frozen=True)
class FatalFailure:
    reason: str
    status_code: Optional[int] = None
    response: Optional[requests.Response] = None
    exception: Optional[BaseException] = None


AttemptOutcome = Union[Success, RetryableFailure, FatalFailure]


@dataclass
class RequestOptions:
    """Per-request HTTP options. params are appended to the URL in the order given.

    A mapping may use `body` as an alias for `data`.
    """

    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Mapping[str, str]] = None
    data: Any = None
    json: Any = None
    timeout_s: float = HTTP_TIMEOUT_S

    @classmethod
    def coerce(cls, options: Union["RequestOptions", Mapping[str, Any], None]) -> "RequestOptions":
        if options is None:
            return cls()
        if isinstance(options, RequestOptions):
            return options
        kwargs = dict(options)
        if "body" in kwargs:
            body = kwargs.pop("body")
            if kwargs.get("data") is not None:
                raise ValueError("pass either body or data, not both")
            kwargs["data"] = body
        return cls(**kwargs)


def build_url(url: str, params: Optional[Mapping[str, str]] = None) -> str:
    """Append params to url as a query string, preserving key order and any existing query."""
    if not params:
        return url
    parts = urlsplit(url)
    query = urlencode(list(params.items()))
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After header given in seconds.

    Returns None for a missing, empty, non-numeric, non-positive or non-finite
    value so the caller falls back to computed backoff instead of retrying
    immediately.
    """
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    return seconds


def classify_response(response: requests.Response) -> AttemptOutcome:
    status = response.status_code
    if status < 400:
        return Success(response)
    reason = f"HTTP {status}"
    if getattr(response, "reason", None):
        reason = f"{reason} {response.reason}"
    if status == 429:
        return RetryableFailure(
            reason=reason,
            status_code=status,
            retry_after_s=parse_retry_after(response.headers.get("Retry-After")),
            response=response,
        )
    if status == 408 or status >= 500:
        return RetryableFailure(reason=reason, status_code=status, response=response)
    return FatalFailure(reason=reason, status_code=status, response=response)


def classify_exception(exc: BaseException) -> AttemptOutcome:
    reason = f"{type(exc).__name__}: {exc}"
    if isinstance(exc, NETWORK_ERRORS):
        return RetryableFailure(reason=reason, exception=exc)
    return FatalFailure(reason=reason, exception=exc)


class RetryableFetch:
    """
    Execute one logical HTTP request with bounded, classified retries.

    Usage:
        fetcher = RetryableFetch()
        resp = fetcher.fetch(
            "https://api.example.com/v1/price",
            {"params": {"address": "So111"}},
            {"max_attempts": 5},
        )

    Attempts are strictly sequential. The wait between attempts is
    `sleep` on the calling thread; `clock` measures the optional deadline.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        default_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self._default_policy = default_policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock

    @property
    def default_policy(self) -> RetryPolicy:
        return self._default_policy

    def resolve_policy(
        self, retry_policy: Union[RetryPolicy, Mapping[str, Any], None] = None
    ) -> RetryPolicy:
        if retry_policy is None:
            return self._default_policy
        if isinstance(retry_policy, RetryPolicy):
            return retry_policy
        return self._default_policy.with_overrides(**dict(retry_policy))

    def fetch(
        self,
        url: str,
        options: Union[RequestOptions, Mapping[str, Any], None] = None,
        retry_policy: Union[RetryPolicy, Mapping[str, Any], None] = None,
        *,
        deadline_s: Optional[float] = None,
    ) -> requests.Response:
        """
        Perform the request, retrying transient failures.

        Raises FatalRequestError, RetriesExhaustedError or DeadlineExceededError.
        """
        opts = RequestOptions.coerce(options)
        policy = self.resolve_policy(retry_policy)
        target = build_url(url, opts.params)
        deadline_at = None if deadline_s is None else self._clock() + deadline_s

        last: Optional[Union[RetryableFailure, FatalFailure]] = None
        attempt = 0
        while attempt < policy.max_attempts:
            if deadline_at is not None and self._clock() >= deadline_at:
                raise self._deadline_error(target, attempt, last)
            attempt += 1
            outcome = self._attempt(target, opts)

            if isinstance(outcome, Success):
                if attempt > 1:
                    logger.info("Request to %s succeeded on attempt %d", target, attempt)
                return outcome.response

            last = outcome
            if isinstance(outcome, FatalFailure):
                logger.warning("Request to %s failed (not retryable): %s", target, outcome.reason)
                raise FatalRequestError(
                    f"Request to {target} failed: {outcome.reason}",
                    url=target,
                    attempts=attempt,
                    status_code=outcome.status_code,
                    response=outcome.response,
                ) from outcome.exception

            if attempt >= policy.max_attempts:
                logger.warning(
                    "Request to %s failed after %d attempts: %s", target, attempt, outcome.reason
                )
                raise RetriesExhaustedError(
                    f"Request to {target} failed after {attempt} attempts: {outcome.reason}",
                    url=target,
                    attempts=attempt,
                    status_code=outcome.status_code,
                    response=outcome.response,
                ) from outcome.exception

            if outcome.retry_after_s is not None:
                delay = outcome.retry_after_s
            else:
                delay = policy.delay_for(attempt)
            if deadline_at is not None and self._clock() + delay >= deadline_at:
                raise self._deadline_error(target, attempt, last)

            logger.info(
                "Attempt %d/%d for %s failed (%s); retrying in %.2fs",
                attempt, policy.max_attempts, target, outcome.reason, delay,
            )
            if outcome.response is not None:
                outcome.response.close()
            self._sleep(delay)

        raise self._deadline_error(target, attempt, last)

    def _attempt(self, url: str, opts: RequestOptions) -> AttemptOutcome:
        try:
            response = self._session.request(
                opts.method,
                url,
                headers=opts.headers or None,
                data=opts.data,
                json=opts.json,
                timeout=opts.timeout_s,
            )
        except Exception as exc:
            return classify_exception(exc)
        return classify_response(response)

    @staticmethod
    def _deadline_error(
        url: str, attempts: int, last: Optional[Union[RetryableFailure, FatalFailure]]
    ) -> DeadlineExceededError:
        reason = last.reason if last is not None else "no attempt completed"
        return DeadlineExceededError(
            f"Deadline exceeded for {url} after {attempts} attempts: {reason}",
            url=url,
            attempts=attempts,
            status_code=last.status_code if last is not None else None,
            response=last.response if last is not None else None,
        )


def fetch_with_retry(
    url: str,
    options: Union[RequestOptions, Mapping[str, Any], None] = None,
    retry_policy: Union[RetryPolicy, Mapping[str, Any], None] = None,
    *,
    deadline_s: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """One-shot convenience wrapper around RetryableFetch.fetch.

    Without a session a temporary one is opened and closed around the call.
    """
    if session is not None:
        return RetryableFetch(session=session).fetch(
            url, options, retry_policy, deadline_s=deadline_s
        )
    with requests.Session() as owned:
        return RetryableFetch(session=owned).fetch(
            url, options, retry_policy, deadline_s=deadline_s
        )


class TtlCache:
    """
    Cache of recent successful results per key.

    Entries older than ttl_seconds are treated as missing and dropped on read.
    """

    def __init__(self, ttl_seconds: float = 30.0) -> None:
        self._ttl_s = ttl_seconds
        self._store: Dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, timestamp = entry
            if (time.monotonic() - timestamp) >= self._ttl_s:
                del self._store[key]
                return None
            return value

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._store[key] = (value, time.monotonic())

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
