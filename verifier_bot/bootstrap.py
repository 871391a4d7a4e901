"""One-time guild setup run after the gateway reports ready.

Every step is idempotent so a restart against an already prepared guild
changes nothing. Any failure here is fatal: the caller stops the bot.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Final

import discord
from discord import app_commands

log: Final = logging.getLogger("mc-gateway")

INSTRUCTIONS_TITLE: Final[str] = "Verification Ready!"
INSTRUCTIONS_DESCRIPTION: Final[str] = (
    "Type `/verify <username>` to add your minecraft profile to the server whitelist."
)
INSTRUCTIONS_FOOTER: Final[str] = "Minecraft Verification Bot"

# (description, coroutine factory) -> result; lets shadow mode skip mutations
Mutator = Callable[[str, Callable[[], Awaitable[Any]]], Awaitable[Any]]


class BootstrapError(RuntimeError):
    """Startup could not establish the state the bot depends on."""


@dataclass(slots=True)
class GuildState:
    guild: discord.Guild
    verify_channel: discord.TextChannel
    status_channel: discord.abc.GuildChannel
    verified_role: discord.Role | None


async def _run_directly(_description: str, factory: Callable[[], Awaitable[Any]]) -> Any:
    return await factory()


def instructions_embed() -> discord.Embed:
    embed = discord.Embed(
        title=INSTRUCTIONS_TITLE,
        description=INSTRUCTIONS_DESCRIPTION,
        color=discord.Color.dark_green(),
    )
    embed.set_footer(text=INSTRUCTIONS_FOOTER)
    return embed


def find_target_guild(
    guilds: Iterable[discord.Guild], verify_channel_id: int
) -> discord.Guild:
    """Return the guild that owns the verify channel."""
    for guild in guilds:
        if guild.get_channel(verify_channel_id) is not None:
            return guild
    raise BootstrapError(
        f"No guild has a channel with DISCORD_VERIFY_CHANNEL_ID {verify_channel_id}"
    )


def find_verified_role(guild: discord.Guild, role_name: str) -> discord.Role | None:
    return discord.utils.get(guild.roles, name=role_name)


async def ensure_verified_role(
    guild: discord.Guild, role_name: str, *, mutate: Mutator = _run_directly
) -> discord.Role | None:
    role = find_verified_role(guild, role_name)
    if role is not None:
        log.debug("Role %s already exists in %s", role_name, guild.id)
        return role

    role = await mutate(
        f"create role {role_name} in guild {guild.id}",
        lambda: guild.create_role(
            name=role_name,
            colour=discord.Colour.blue(),
            hoist=True,
            reason="Minecraft verification setup",
        ),
    )
    log.info("Created the %s role", role_name)
    return role


async def ensure_instructions_message(
    channel: discord.TextChannel, *, mutate: Mutator = _run_directly
) -> bool:
    """Post the instructions embed unless the channel already has history."""
    existing = [message async for message in channel.history(limit=1)]
    if existing:
        return False

    await mutate(
        f"send verification instructions to channel {channel.id}",
        lambda: channel.send(embed=instructions_embed()),
    )
    log.info("Sent the first verify info message")
    return True


async def register_verify_command(
    tree: app_commands.CommandTree,
    guild: discord.Guild,
    command: app_commands.Command,
) -> None:
    tree.add_command(command, guild=guild, override=True)
    await tree.sync(guild=guild)
    log.info("Registered /%s in guild %s", command.name, guild.id)


async def run_bootstrap(
    guilds: Iterable[discord.Guild],
    tree: app_commands.CommandTree,
    command: app_commands.Command,
    *,
    verify_channel_id: int,
    status_channel_id: int,
    role_name: str,
    mutate: Mutator = _run_directly,
) -> GuildState:
    try:
        guild = find_target_guild(guilds, verify_channel_id)

        verify_channel = guild.get_channel(verify_channel_id)
        if not isinstance(verify_channel, discord.TextChannel):
            raise BootstrapError(
                f"Channel {verify_channel_id} is not a text channel in guild {guild.id}"
            )

        status_channel = guild.get_channel(status_channel_id)
        if status_channel is None:
            raise BootstrapError(
                f"No channel with DISCORD_STATUS_CHANNEL_ID {status_channel_id} "
                f"in guild {guild.id}"
            )

        role = await ensure_verified_role(guild, role_name, mutate=mutate)
        await ensure_instructions_message(verify_channel, mutate=mutate)
        await register_verify_command(tree, guild, command)
    except discord.DiscordException as exc:
        raise BootstrapError(f"Discord rejected a setup step: {exc}") from exc

    return GuildState(
        guild=guild,
        verify_channel=verify_channel,
        status_channel=status_channel,
        verified_role=role,
    )
