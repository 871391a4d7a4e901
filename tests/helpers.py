"""Test doubles shared across the suite."""

from __future__ import annotations

from unittest.mock import MagicMock

import discord


class AsyncIter:
    """Minimal async iterator standing in for ``channel.history()``."""

    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


class FakeMembership:
    """In-memory Verified-role state for a single member."""

    def __init__(self, verified: bool = False, grant_error: Exception | None = None):
        self.verified = verified
        self.grant_error = grant_error
        self.checks = 0
        self.grants = 0

    async def is_verified(self) -> bool:
        self.checks += 1
        return self.verified

    async def grant_verified(self) -> None:
        self.grants += 1
        if self.grant_error is not None:
            raise self.grant_error
        self.verified = True


def http_error(cls=discord.HTTPException, status: int = 500, message: str = "boom"):
    response = MagicMock()
    response.status = status
    response.reason = message
    return cls(response, message)
