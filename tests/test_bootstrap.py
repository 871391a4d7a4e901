"""Tests for the one-time guild setup."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from tests.helpers import AsyncIter, http_error
from verifier_bot.bootstrap import (
    INSTRUCTIONS_DESCRIPTION,
    INSTRUCTIONS_TITLE,
    BootstrapError,
    ensure_instructions_message,
    ensure_verified_role,
    find_target_guild,
    instructions_embed,
    run_bootstrap,
)

VERIFY_CHANNEL_ID = 111
STATUS_CHANNEL_ID = 222


def text_channel(channel_id=VERIFY_CHANNEL_ID, history=()):
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = channel_id
    channel.history = MagicMock(side_effect=lambda limit: AsyncIter(history))
    channel.send = AsyncMock()
    return channel


def make_guild(guild, channels):
    guild.get_channel = MagicMock(side_effect=channels.get)
    return guild


def make_tree():
    tree = MagicMock()
    tree.sync = AsyncMock(return_value=[])
    return tree


def make_command():
    command = MagicMock()
    command.name = "verify"
    return command


class TestFindTargetGuild:
    def test_picks_guild_owning_verify_channel(self, guild):
        other = MagicMock(spec=discord.Guild)
        other.get_channel = MagicMock(return_value=None)
        make_guild(guild, {VERIFY_CHANNEL_ID: text_channel()})

        assert find_target_guild([other, guild], VERIFY_CHANNEL_ID) is guild

    def test_no_matching_guild_is_fatal(self, guild):
        make_guild(guild, {})

        with pytest.raises(BootstrapError, match="DISCORD_VERIFY_CHANNEL_ID"):
            find_target_guild([guild], VERIFY_CHANNEL_ID)


class TestEnsureVerifiedRole:
    @pytest.mark.asyncio
    async def test_existing_role_is_reused(self, guild, verified_role):
        role = await ensure_verified_role(guild, "Verified")

        assert role is verified_role
        guild.create_role.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_role_is_created_blue_and_hoisted(self, guild):
        guild.roles = []
        created = SimpleNamespace(id=9, name="Verified")
        guild.create_role.return_value = created

        role = await ensure_verified_role(guild, "Verified")

        assert role is created
        guild.create_role.assert_awaited_once()
        kwargs = guild.create_role.await_args.kwargs
        assert kwargs["name"] == "Verified"
        assert kwargs["colour"] == discord.Colour.blue()
        assert kwargs["hoist"] is True

    @pytest.mark.asyncio
    async def test_mutator_can_skip_creation(self, guild):
        guild.roles = []
        mutate = AsyncMock(return_value=None)

        role = await ensure_verified_role(guild, "Verified", mutate=mutate)

        assert role is None
        guild.create_role.assert_not_called()
        assert "create role Verified" in mutate.await_args.args[0]


class TestEnsureInstructionsMessage:
    @pytest.mark.asyncio
    async def test_empty_channel_gets_instructions(self):
        channel = text_channel()

        sent = await ensure_instructions_message(channel)

        assert sent is True
        embed = channel.send.await_args.kwargs["embed"]
        assert embed.title == INSTRUCTIONS_TITLE
        assert embed.description == INSTRUCTIONS_DESCRIPTION
        channel.history.assert_called_once_with(limit=1)

    @pytest.mark.asyncio
    async def test_channel_with_history_is_left_alone(self):
        channel = text_channel(history=[MagicMock(spec=discord.Message)])

        sent = await ensure_instructions_message(channel)

        assert sent is False
        channel.send.assert_not_called()


def test_instructions_embed_footer():
    embed = instructions_embed()
    assert embed.footer.text == "Minecraft Verification Bot"
    assert embed.color == discord.Color.dark_green()


class TestRunBootstrap:
    @pytest.mark.asyncio
    async def test_fresh_guild_is_prepared(self, guild):
        guild.roles = []
        guild.create_role.return_value = SimpleNamespace(id=9, name="Verified")
        verify_channel = text_channel()
        status_channel = MagicMock(spec=discord.VoiceChannel)
        make_guild(
            guild,
            {VERIFY_CHANNEL_ID: verify_channel, STATUS_CHANNEL_ID: status_channel},
        )
        tree = make_tree()
        command = make_command()

        state = await run_bootstrap(
            [guild],
            tree,
            command,
            verify_channel_id=VERIFY_CHANNEL_ID,
            status_channel_id=STATUS_CHANNEL_ID,
            role_name="Verified",
        )

        assert state.guild is guild
        assert state.verify_channel is verify_channel
        assert state.status_channel is status_channel
        assert state.verified_role.name == "Verified"
        guild.create_role.assert_awaited_once()
        verify_channel.send.assert_awaited_once()
        tree.add_command.assert_called_once_with(command, guild=guild, override=True)
        tree.sync.assert_awaited_once_with(guild=guild)

    @pytest.mark.asyncio
    async def test_rerun_on_prepared_guild_creates_nothing(self, guild):
        """
        GIVEN a guild that already has the role and the instructions message
        WHEN bootstrap runs again
        THEN no role is created and no message is sent
        """
        verify_channel = text_channel(history=[MagicMock(spec=discord.Message)])
        make_guild(
            guild,
            {VERIFY_CHANNEL_ID: verify_channel, STATUS_CHANNEL_ID: MagicMock()},
        )
        tree = make_tree()

        for _ in range(2):
            await run_bootstrap(
                [guild],
                tree,
                make_command(),
                verify_channel_id=VERIFY_CHANNEL_ID,
                status_channel_id=STATUS_CHANNEL_ID,
                role_name="Verified",
            )

        guild.create_role.assert_not_called()
        verify_channel.send.assert_not_called()
        assert tree.sync.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_status_channel_is_fatal(self, guild):
        make_guild(guild, {VERIFY_CHANNEL_ID: text_channel()})

        with pytest.raises(BootstrapError, match="DISCORD_STATUS_CHANNEL_ID"):
            await run_bootstrap(
                [guild],
                make_tree(),
                make_command(),
                verify_channel_id=VERIFY_CHANNEL_ID,
                status_channel_id=STATUS_CHANNEL_ID,
                role_name="Verified",
            )

    @pytest.mark.asyncio
    async def test_verify_channel_must_be_text(self, guild):
        make_guild(
            guild,
            {
                VERIFY_CHANNEL_ID: MagicMock(spec=discord.VoiceChannel),
                STATUS_CHANNEL_ID: MagicMock(),
            },
        )

        with pytest.raises(BootstrapError, match="not a text channel"):
            await run_bootstrap(
                [guild],
                make_tree(),
                make_command(),
                verify_channel_id=VERIFY_CHANNEL_ID,
                status_channel_id=STATUS_CHANNEL_ID,
                role_name="Verified",
            )

    @pytest.mark.asyncio
    async def test_discord_errors_become_bootstrap_errors(self, guild):
        guild.roles = []
        guild.create_role.side_effect = http_error(discord.Forbidden, 403, "Missing Permissions")
        make_guild(
            guild,
            {VERIFY_CHANNEL_ID: text_channel(), STATUS_CHANNEL_ID: MagicMock()},
        )

        with pytest.raises(BootstrapError) as excinfo:
            await run_bootstrap(
                [guild],
                make_tree(),
                make_command(),
                verify_channel_id=VERIFY_CHANNEL_ID,
                status_channel_id=STATUS_CHANNEL_ID,
                role_name="Verified",
            )

        assert isinstance(excinfo.value.__cause__, discord.Forbidden)
