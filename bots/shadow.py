"""Shadow mode: rehearse the bot against a live guild without mutating anything.

Reads still happen (role checks, Mojang lookups, status pings); whitelist
adds, role changes, channel renames and setup posts are reported instead.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import discord

from verifier_bot.allowlist import GrantResult

from .config import ShadowConfig

log = logging.getLogger(__name__)


class ShadowReporter:
    def __init__(self, bot: discord.Client, config: ShadowConfig) -> None:
        self._bot = bot
        self._config = config

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def channel_id(self) -> int | None:
        return self._config.channel_id

    async def _report_channel(self) -> discord.abc.Messageable | None:
        if self.channel_id is None:
            return None
        channel = self._bot.get_channel(self.channel_id)
        if channel is None:
            try:
                channel = await self._bot.fetch_channel(self.channel_id)
            except discord.DiscordException as exc:  # pragma: no cover - network failure
                log.warning("Unable to fetch shadow channel %s: %s", self.channel_id, exc)
                return None
        if not isinstance(channel, discord.abc.Messageable):
            return None
        return channel

    async def report(self, message: str) -> None:
        if not self.enabled:
            return

        channel = await self._report_channel()
        if channel is None:
            log.info("[SHADOW] %s", message)
            return

        try:
            await channel.send(content=message)
        except discord.DiscordException as exc:  # pragma: no cover - network failure
            log.warning(
                "Failed to send shadow report to channel %s: %s", self.channel_id, exc
            )

    async def noop_or_run(
        self, description: str, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Run the mutation, or only report it when shadow mode is on.

        Takes a factory rather than a coroutine so nothing is created (and
        left un-awaited) in shadow mode.
        """
        if self.enabled:
            await self.report(f"[noop] {description}")
            return None
        return await factory()

    async def rehearse_grant(self, canonical_name: str) -> GrantResult:
        await self.report(f"[noop] whitelist add {canonical_name}")
        return GrantResult(status="ok", response="shadow")
