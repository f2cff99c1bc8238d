import asyncio

import pytest

from gangrun.services.oauth import TokenCache


class Fetcher:
    def __init__(self, expires_in=3600):
        self.expires_in = expires_in
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(0)
        return f"token-{self.calls}", self.expires_in


@pytest.mark.asyncio
async def test_token_cached():
    fetcher = Fetcher()
    cache = TokenCache(fetcher, name="test")

    assert await cache.get_token() == "token-1"
    assert await cache.get_token() == "token-1"
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh():
    fetcher = Fetcher()
    cache = TokenCache(fetcher, name="test")

    tokens = await asyncio.gather(*(cache.get_token() for _ in range(10)))

    assert set(tokens) == {"token-1"}
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_token_inside_expiry_buffer_is_refreshed():
    """A token with under five minutes left is treated as expired."""
    fetcher = Fetcher(expires_in=240)
    cache = TokenCache(fetcher, name="test")

    assert await cache.get_token() == "token-1"
    assert await cache.get_token() == "token-2"


@pytest.mark.asyncio
async def test_invalidate_forces_refresh():
    fetcher = Fetcher()
    cache = TokenCache(fetcher, name="test")

    await cache.get_token()
    cache.invalidate()

    assert await cache.get_token() == "token-2"


@pytest.mark.asyncio
async def test_fetch_error_propagates_and_is_not_cached():
    attempts = []

    async def failing():
        attempts.append(1)
        raise RuntimeError("auth down")

    cache = TokenCache(failing, name="test")

    with pytest.raises(RuntimeError):
        await cache.get_token()
    with pytest.raises(RuntimeError):
        await cache.get_token()
    assert len(attempts) == 2
