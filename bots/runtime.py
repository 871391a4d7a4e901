"""Bot runtime that wires the verification workflow and status loop to Discord."""

from __future__ import annotations

import asyncio
import logging
from functools import partial

import discord
from discord import app_commands
from discord.ext import tasks

from bots.config import EnvironmentConfig, read_shadow_config
from bots.shadow import ShadowReporter
from bots.verification import ChannelLabel, VerifyCommandHandler, build_verify_command
from verifier_bot import allowlist, identity, server_status
from verifier_bot.bootstrap import BootstrapError, GuildState, run_bootstrap
from verifier_bot.reconcile import StatusReconciler
from verifier_bot.workflow import UserLocks, VerificationWorkflow

log = logging.getLogger("mc-gateway")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class BotRuntime:
    def __init__(self, config: EnvironmentConfig) -> None:
        intents = discord.Intents.default()
        intents.guilds = True

        self.config = config
        self.bot = discord.Client(intents=intents)
        self.tree = app_commands.CommandTree(self.bot)
        self.shadow_reporter = ShadowReporter(self.bot, read_shadow_config())
        self.rcon_target = allowlist.RconTarget(
            host=config.server_address,
            password=config.rcon_password,
            port=config.rcon_port,
            timeout=config.rcon_timeout_seconds,
        )

        self.workflow = VerificationWorkflow(
            partial(identity.resolve, timeout=config.identity_timeout_seconds),
            self.grant_access,
            locks=UserLocks() if config.serialize_per_user else None,
        )
        self.command_handler = VerifyCommandHandler(
            self.bot,
            self.workflow,
            self.shadow_reporter,
            role_name=config.verified_role_name,
            admin_log_channel_id=config.admin_log_channel_id,
            on_fatal=self.halt,
        )
        self.verify_command = build_verify_command(self.command_handler)

        self.reconciler = StatusReconciler(
            partial(
                server_status.query_status,
                config.server_address,
                config.status_port,
                timeout=config.status_timeout_seconds,
            ),
            ChannelLabel(self.bot, config.status_channel_id, self.shadow_reporter),
        )
        self.status_loop = tasks.loop(seconds=config.status_interval_seconds)(
            self.status_tick
        )

        self.guild_state: GuildState | None = None
        self.fatal_error: BaseException | None = None
        self._ready_once = False

        self.bot.event(self.on_ready)

    async def grant_access(self, canonical_name: str) -> allowlist.GrantResult:
        if self.shadow_reporter.enabled:
            return await self.shadow_reporter.rehearse_grant(canonical_name)
        return await allowlist.grant_access(self.rcon_target, canonical_name)

    async def status_tick(self) -> None:
        try:
            await self.reconciler.reconcile_once()
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Status tick failed: %s", exc)
        log.debug("Tick complete")

    async def halt(self, exc: BaseException) -> None:
        if self.fatal_error is None:
            self.fatal_error = exc
        if self.status_loop.is_running():
            self.status_loop.cancel()
        await self.bot.close()

    async def on_ready(self) -> None:
        log.info("%s is connected!", self.bot.user)
        if self._ready_once:
            log.info("Gateway resumed; setup already done")
            return
        self._ready_once = True

        if self.shadow_reporter.enabled:
            log.info("Bot running in SHADOW mode")

        # Guild caches are not complete right away.
        log.info("Loading everything...")
        await asyncio.sleep(self.config.ready_settle_seconds)

        try:
            self.guild_state = await run_bootstrap(
                self.bot.guilds,
                self.tree,
                self.verify_command,
                verify_channel_id=self.config.verify_channel_id,
                status_channel_id=self.config.status_channel_id,
                role_name=self.config.verified_role_name,
                mutate=self.shadow_reporter.noop_or_run,
            )
        except BootstrapError as exc:
            log.critical("Setup failed, shutting down: %s", exc)
            await self.halt(exc)
            return

        self.status_loop.start()
        log.info("Bot ready as %s", self.bot.user)

    async def run(self) -> None:
        async with self.bot:
            await self.bot.start(self.config.discord_token)
        if self.fatal_error is not None:
            raise self.fatal_error

    @classmethod
    def create(cls) -> "BotRuntime":
        config = EnvironmentConfig.load()
        return cls(config)


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    runtime = BotRuntime.create()
    await runtime.run()


def cli() -> None:
    asyncio.run(main())


__all__ = ["BotRuntime", "cli", "main"]
