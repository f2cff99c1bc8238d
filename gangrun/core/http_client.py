"""
Resilient HTTP Client for Carrier API Calls

- Exponential backoff with jitter
- Retries connection errors for every method
- Retries timeouts and 5xx only for idempotent methods (a rate quote POST
  that reached the carrier is not replayed on a 5xx)
- Retries 429 for every method, honouring Retry-After
- Bounded retry count; the final response is returned to the caller, which
  owns status-code handling

Usage:
    async with ResilientHTTPClient() as client:
        response = await client.post("https://apis.fedex.com/...", json=body)
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Dict, Optional

import httpx

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

# Longest server-requested wait we will sleep through
MAX_RETRY_AFTER_SECONDS = 60.0


class RateLimitExceeded(Exception):
    """
    Raised when a host asks us to wait longer than MAX_RETRY_AFTER_SECONDS.

    Lets callers fail fast (and fall back) instead of blocking checkout.
    """
    def __init__(self, host: str, wait_time: float):
        self.host = host
        self.wait_time = wait_time
        super().__init__(f"Rate limited by {host} for {wait_time:.0f}s")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 0.1           # seconds
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.2        # Random jitter (0-1)

    # Retried only for idempotent methods
    retryable_status_codes: tuple = (500, 502, 503, 504)


class ResilientHTTPClient:
    """
    Async HTTP client with bounded retries.

    The underlying httpx.AsyncClient is created lazily; pass ``transport`` to
    route traffic through an ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        base_url: str = "",
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 30.0,
        default_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.default_headers = default_headers or {"Content-Type": "application/json"}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def init(self):
        """Initialize client without context manager. Must call close() when done."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.default_headers,
                transport=self._transport,
            )
        return self

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _calculate_backoff(self, attempt: int) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Formula: min(base * (exp_base ^ attempt) +/- jitter, max_delay)
        """
        cfg = self.retry_config
        delay = cfg.base_delay * (cfg.exponential_base ** attempt)
        jitter = delay * cfg.jitter_factor * (2 * random.random() - 1)
        return max(0.0, min(delay + jitter, cfg.max_delay))

    def _parse_retry_after(self, response: httpx.Response) -> Optional[float]:
        """Parse Retry-After header into a number of seconds to wait."""
        retry_after = response.headers.get("Retry-After")
        if not retry_after:
            return None

        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass

        try:
            dt = parsedate_to_datetime(retry_after)
            return max(0.0, dt.timestamp() - time.time())
        except (ValueError, TypeError):
            return None

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request with retries.

        Returns:
            The last httpx.Response (any status code)

        Raises:
            httpx.TransportError: When every attempt failed at the transport level
            RateLimitExceeded: When Retry-After exceeds MAX_RETRY_AFTER_SECONDS
        """
        if not self._client:
            await self.init()

        method = method.upper()
        idempotent = method in IDEMPOTENT_METHODS
        cfg = self.retry_config
        host = self._client.base_url.host or httpx.URL(url).host

        for attempt in range(cfg.max_retries + 1):
            can_retry = attempt < cfg.max_retries
            try:
                logger.debug(f"[HTTP] {method} {url} (attempt {attempt + 1}/{cfg.max_retries + 1})")
                response = await self._client.request(method, url, **kwargs)

            except httpx.ConnectError as e:
                if not can_retry:
                    logger.error(f"[HTTP] {host}: All {cfg.max_retries + 1} attempts failed: {e}")
                    raise
                delay = self._calculate_backoff(attempt)
                logger.warning(f"[HTTP] {host}: Connection error, retrying in {delay:.2f}s")
                await asyncio.sleep(delay)
                continue

            except httpx.TimeoutException as e:
                if not (idempotent and can_retry):
                    logger.error(f"[HTTP] {host}: Timeout on {method}, giving up: {e}")
                    raise
                delay = self._calculate_backoff(attempt)
                logger.warning(f"[HTTP] {host}: Timeout, retrying in {delay:.2f}s")
                await asyncio.sleep(delay)
                continue

            if response.status_code == 429 and can_retry:
                wait_time = self._parse_retry_after(response)
                if wait_time is None:
                    wait_time = self._calculate_backoff(attempt)
                if wait_time > MAX_RETRY_AFTER_SECONDS:
                    logger.error(f"[429] {host}: Wait time {wait_time:.0f}s exceeds max - failing fast")
                    raise RateLimitExceeded(host, wait_time)
                logger.warning(f"[429] {host}: Rate limited, backing off {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
                continue

            if idempotent and can_retry and response.status_code in cfg.retryable_status_codes:
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    f"[HTTP] {host}: Status {response.status_code}, "
                    f"retrying in {delay:.2f}s (attempt {attempt + 1})"
                )
                await asyncio.sleep(delay)
                continue

            return response

        # Unreachable: the final attempt always returns or raises
        raise RuntimeError(f"Request to {url} exhausted retries without a response")

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)
