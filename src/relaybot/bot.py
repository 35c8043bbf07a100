"""RelayBot: the Discord client that wires the dispatch core together."""

from __future__ import annotations

import logging
from typing import Any

import discord

from relaybot.channels.directory import ChannelDirectory
from relaybot.channels.log_handler import ChannelLogHandler
from relaybot.channels.store import JsonChannelStore
from relaybot.config import RelaySettings
from relaybot.discovery import discover
from relaybot.exceptions import ConfigurationError
from relaybot.jobs import ScheduledJobRunner
from relaybot.registry import HandlerRegistry
from relaybot.router import EventRouter

log = logging.getLogger(__name__)


class RelayBot(discord.Client):
    """Command-dispatch bot.

    Owns one of each core component:
    - :class:`ChannelDirectory` (optionally persisted to JSON)
    - :class:`HandlerRegistry` filled from handler modules
    - :class:`EventRouter` for messages and channel lifecycle events
    - :class:`ScheduledJobRunner` for cron jobs
    """

    def __init__(self, settings: RelaySettings) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.members = True

        super().__init__(intents=intents)

        # --- Config ---
        self.settings = settings

        # --- Channels ---
        self.store: JsonChannelStore | None = None
        if settings.CHANNEL_CACHE_PATH is not None:
            self.store = JsonChannelStore(settings.CHANNEL_CACHE_PATH)
        self.directory = ChannelDirectory(
            save=self.store.save if self.store else None,
            load=self.store.load if self.store else None,
        )

        # --- Handlers ---
        self.registry = HandlerRegistry(tz=settings.timezone)
        self.router = EventRouter(
            self,
            self.registry,
            self.directory,
            extraction=settings.COMMAND_EXTRACTION,
            max_command_length=settings.MAX_COMMAND_LENGTH,
            introspection_command=settings.INTROSPECTION_COMMAND,
            ignore_bots=settings.IGNORE_BOTS,
        )
        self.jobs: ScheduledJobRunner | None = None

        # --- Logging ---
        self.log_handler: ChannelLogHandler | None = None

    def load_handlers(self) -> None:
        """Discover handler modules and fill the registry, then seal it."""
        definitions = discover(self.settings.HANDLER_PATH, self.settings.HANDLER_PATTERN)
        self.registry.load(
            definitions,
            client=self,
            directory=self.directory,
            on_registered=lambda name: log.info("Registered command %s", name),
        )
        self.registry.seal()
        self.jobs = ScheduledJobRunner(self.registry.jobs.values())

    async def setup_hook(self) -> None:
        """Called after login, before the bot starts processing events."""
        await self.directory.hydrate()
        self.load_handlers()

    async def on_ready(self) -> None:
        """Called when the gateway session is ready.  May fire again after a reconnect."""
        log.info("Logged in as %s (ID: %s)", self.user, self.user.id if self.user else "?")
        self.router.on_ready(self.get_all_channels())

        if self.settings.LOG_CHANNEL and self.log_handler is None:
            self.log_handler = ChannelLogHandler(self, self.directory, self.settings.LOG_CHANNEL)
            self.log_handler.start()
            logging.getLogger("relaybot").addHandler(self.log_handler)

        # Jobs must start exactly once per process.
        if self.jobs is not None and not self.jobs.running:
            await self.jobs.start_all()

        log.info(
            "Relay ready: %d command(s), %d job(s), %d channel(s) known",
            len(self.registry.commands), len(self.registry.jobs), len(self.directory),
        )

    async def on_message(self, message: discord.Message) -> None:
        await self.router.dispatch(message)

    async def on_guild_channel_create(self, channel: Any) -> None:
        self.router.on_channels_changed(self.get_all_channels())

    async def on_guild_channel_update(self, before: Any, after: Any) -> None:
        self.router.on_channels_changed(self.get_all_channels())

    async def on_guild_channel_delete(self, channel: Any) -> None:
        self.router.on_channels_changed(self.get_all_channels())

    def run_with_settings(self) -> None:
        """Connect with the configured token and block until the bot closes.

        Raises:
            ConfigurationError: The token is blank.  Raised before any
                connection attempt.
        """
        token = self.settings.DISCORD_TOKEN.strip()
        if not token:
            raise ConfigurationError("DISCORD_TOKEN is required. Check the config again.")
        # Logging is configured by the entry point, not by discord.py.
        self.run(token, log_handler=None)

    async def close(self) -> None:
        """Clean shutdown."""
        log.info("Shutting down relaybot...")
        if self.jobs is not None:
            await self.jobs.stop_all()
        await self.router.close()
        await self.directory.drain()
        if self.log_handler is not None:
            logging.getLogger("relaybot").removeHandler(self.log_handler)
            await self.log_handler.stop()
            self.log_handler = None
        await super().close()
