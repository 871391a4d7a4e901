"""Discord side of the /verify command.

Adapts interaction members and the status channel to the ports the core
workflow and reconciler expect, and turns workflow outcomes into
ephemeral replies.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Final

import discord
from discord import app_commands

from bots.shadow import ShadowReporter
from verifier_bot import logging_utils
from verifier_bot.bootstrap import find_verified_role
from verifier_bot.workflow import (
    InvariantViolation,
    VerificationOutcome,
    VerificationRequest,
    VerificationWorkflow,
)

log = logging.getLogger(__name__)

# ---------- Constants ----------
VERIFY_COMMAND_NAME: Final[str] = "verify"
VERIFY_COMMAND_DESCRIPTION: Final[str] = (
    "Verify a Minecraft username and add it to the whitelist."
)
USERNAME_DESCRIPTION: Final[str] = "Your Minecraft username"

GUILD_ONLY_MESSAGE: Final[str] = "Commands only work in a specific server"
SETUP_ERROR_MESSAGE: Final[str] = (
    "Setup error: verified role not found – contact an admin."
)
DISCORD_ERROR_MESSAGE: Final[str] = "Unexpected Discord error – try again later."


class MemberMembership:
    """Verified-role state of one guild member.

    The member is re-fetched over REST on every check so a request queued
    behind another one from the same user sees the role that one granted.
    """

    def __init__(
        self,
        guild: discord.Guild,
        member: discord.Member,
        role_name: str,
        shadow: ShadowReporter,
    ) -> None:
        self._guild = guild
        self._member = member
        self._role_name = role_name
        self._shadow = shadow

    def _role(self) -> discord.Role | None:
        role = find_verified_role(self._guild, self._role_name)
        if role is None and not self._shadow.enabled:
            raise InvariantViolation(
                f"Role {self._role_name!r} missing in guild {self._guild.id}"
            )
        return role

    async def is_verified(self) -> bool:
        role = self._role()
        if role is None:
            # shadow mode never created the role
            return False
        member = await self._guild.fetch_member(self._member.id)
        return any(r.id == role.id for r in member.roles)

    async def grant_verified(self) -> None:
        role = self._role()
        await self._shadow.noop_or_run(
            f"add role {self._role_name} to {self._member.id}",
            lambda: self._member.add_roles(role, reason="Passed Minecraft verification"),
        )


class ChannelLabel:
    """The status channel, whose name is the displayed label."""

    def __init__(
        self, client: discord.Client, channel_id: int, shadow: ShadowReporter
    ) -> None:
        self._client = client
        self._channel_id = channel_id
        self._shadow = shadow

    async def _channel(self) -> discord.abc.GuildChannel:
        channel = self._client.get_channel(self._channel_id)
        if channel is None:
            channel = await self._client.fetch_channel(self._channel_id)
        return channel

    async def current_label(self) -> str | None:
        channel = await self._channel()
        return getattr(channel, "name", None)

    async def apply_label(self, label: str) -> None:
        channel = await self._channel()
        await self._shadow.noop_or_run(
            f"rename channel {self._channel_id} to {label!r}",
            lambda: channel.edit(name=label),
        )


class VerifyCommandHandler:
    def __init__(
        self,
        bot: discord.Client,
        workflow: VerificationWorkflow,
        shadow: ShadowReporter,
        *,
        role_name: str,
        admin_log_channel_id: int | None = None,
        on_fatal: Callable[[BaseException], Awaitable[None]] | None = None,
    ) -> None:
        self._bot = bot
        self._workflow = workflow
        self._shadow = shadow
        self._role_name = role_name
        self._admin_log_channel_id = admin_log_channel_id
        self._on_fatal = on_fatal

    async def _reply(self, interaction: discord.Interaction, content: str) -> None:
        try:
            await interaction.followup.send(content, ephemeral=True)
        except discord.HTTPException as exc:
            log.exception("Couldn't respond to /verify: %s", exc)

    async def handle(
        self, interaction: discord.Interaction, username: object
    ) -> VerificationOutcome | None:
        await interaction.response.defer(ephemeral=True)

        guild = interaction.guild
        member = interaction.user
        if guild is None or not isinstance(member, discord.Member):
            await self._reply(interaction, GUILD_ONLY_MESSAGE)
            return None

        request = VerificationRequest(
            user_id=member.id,
            username=username if isinstance(username, str) else "",
        )
        membership = MemberMembership(guild, member, self._role_name, self._shadow)

        try:
            outcome = await self._workflow.run(request, membership)
        except InvariantViolation as exc:
            log.critical("Verification invariant violated: %s", exc)
            await self._reply(interaction, SETUP_ERROR_MESSAGE)
            if self._on_fatal is not None:
                await self._on_fatal(exc)
            return None
        except discord.HTTPException as exc:
            log.exception("Discord error while verifying %s: %s", member.id, exc)
            await self._reply(interaction, DISCORD_ERROR_MESSAGE)
            return None

        await self._reply(interaction, outcome.message)

        if outcome.fatal is not None:
            if self._on_fatal is not None:
                await self._on_fatal(outcome.fatal)
            return outcome

        if outcome.role_granted and outcome.canonical_name:
            name = outcome.canonical_name
            await self._shadow.noop_or_run(
                f"announce {member.id} verified as {name}",
                lambda: logging_utils.announce_verification(
                    self._bot, self._admin_log_channel_id, guild, member, name
                ),
            )
        return outcome


def build_verify_command(handler: VerifyCommandHandler) -> app_commands.Command:
    @app_commands.command(
        name=VERIFY_COMMAND_NAME, description=VERIFY_COMMAND_DESCRIPTION
    )
    @app_commands.describe(username=USERNAME_DESCRIPTION)
    async def verify(interaction: discord.Interaction, username: str) -> None:
        await handler.handle(interaction, username)

    return verify
