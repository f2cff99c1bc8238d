"""
OAuth client-credentials token cache.

FedEx and UPS both issue short-lived bearer tokens. A TokenCache holds one
token and refreshes it 5 minutes before expiry. The refresh is guarded by an
asyncio.Lock, so coroutines sharing a client wait on a single token request
instead of each fetching their own.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_BUFFER = timedelta(minutes=5)

# Returns (access_token, expires_in_seconds)
TokenFetcher = Callable[[], Awaitable[Tuple[str, int]]]


class TokenCache:
    """Single bearer token with lock-guarded refresh."""

    def __init__(self, fetcher: TokenFetcher, name: str = "oauth"):
        self._fetcher = fetcher
        self._name = name
        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        if not self._access_token or not self._expires_at:
            return False
        return datetime.now(timezone.utc) < self._expires_at - TOKEN_EXPIRY_BUFFER

    async def get_token(self) -> str:
        if self._is_fresh():
            return self._access_token

        async with self._lock:
            # Another coroutine may have refreshed while we waited
            if self._is_fresh():
                return self._access_token

            token, expires_in = await self._fetcher()
            self._access_token = token
            self._expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
            logger.info(f"{self._name} token obtained, expires in {expires_in}s")
            return token

    def invalidate(self):
        """Drop the cached token so the next call fetches a new one."""
        self._access_token = None
        self._expires_at = None
