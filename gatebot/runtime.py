"""Gateway runtime: Discord client, webhook server and store in one loop."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Final

import discord
import uvicorn
from discord import app_commands
from discord.ext import tasks

from .commands import register_commands
from .config import GatewayConfig
from .listeners import register_listeners
from .logging_utils import configure_logging
from .service import VerificationService
from .sessions import SessionRegistry
from .storage import VerificationStore
from .webhook import create_app

log = logging.getLogger("gatebot")

SESSION_PURGE_INTERVAL_MINUTES: Final[int] = 5


class GatewayRuntime:
    def __init__(
        self,
        config: GatewayConfig,
        *,
        store: VerificationStore | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.dm_messages = True
        intents.message_content = True

        self.config = config
        self.bot = discord.Client(intents=intents)
        self.tree = app_commands.CommandTree(self.bot)
        self.store = store or VerificationStore.from_config(config)
        self.sessions = SessionRegistry(timedelta(minutes=config.session_ttl_minutes))
        self.service = VerificationService(
            self.bot, config, self.store, self.sessions
        )
        self.app = create_app(self.service, webhook_secret=config.webhook_secret)
        self.session_purge = tasks.loop(minutes=SESSION_PURGE_INTERVAL_MINUTES)(
            self.purge_sessions
        )
        self._server: uvicorn.Server | None = None

        register_commands(self.tree, self.service, guild_id=config.guild_id)
        register_listeners(self.bot, self.service)
        self.bot.event(self.on_ready)

    async def on_ready(self) -> None:
        try:
            synced = await self.tree.sync(guild=discord.Object(id=self.config.guild_id))
            log.info("Synced %d application commands", len(synced))
        except discord.HTTPException as exc:
            log.exception("Failed to sync application commands: %s", exc)

        if not self.session_purge.is_running():
            self.session_purge.start()
        log.info("Bot ready as %s (%s)", self.bot.user, self.bot.user.id)

    async def purge_sessions(self) -> None:
        self.sessions.purge_expired()

    def build_server(self) -> uvicorn.Server:
        server_config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_config=None,
        )
        return uvicorn.Server(server_config)

    async def run(self) -> None:
        server_task = None
        try:
            await self.store.ensure_table()

            self._server = self.build_server()
            server_task = asyncio.create_task(self._server.serve())
            log.info(
                "Verification web server listening on %s:%s",
                self.config.host,
                self.config.port,
            )
            async with self.bot:
                await self.bot.start(self.config.discord_token)
        finally:
            await self.shutdown(server_task)

    async def shutdown(self, server_task: asyncio.Task | None = None) -> None:
        try:
            if self.session_purge.is_running():
                self.session_purge.cancel()
            if self._server is not None:
                self._server.should_exit = True
            if server_task is not None:
                await server_task
        finally:
            await self.store.close()
            log.info("Gateway stopped")

    @classmethod
    def create(cls) -> "GatewayRuntime":
        config = GatewayConfig.load()
        return cls(config)


async def main() -> None:
    configure_logging()
    runtime = GatewayRuntime.create()
    await runtime.run()


def run_cli() -> None:
    asyncio.run(main())


__all__ = ["GatewayRuntime", "main", "run_cli"]
