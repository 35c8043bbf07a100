"""Inbound event routing.

The :class:`EventRouter` turns gateway events into handler invocations:

* every message is matched on its first word against the registered command
  names and, on a match, the command's chain runs with a fresh
  :class:`~relaybot.context.MessageContext`;
* channel create/update/delete and the ready signal rebuild the
  :class:`~relaybot.channels.directory.ChannelDirectory`.

A failing chain is answered with a best-effort reply carrying the error
message; nothing a handler does can take the router down.

Per-message states::

    Idle -> PrefixMatched -> ChainRunning -> Completed | Failed
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Literal

import discord

from relaybot.chain import run_chain
from relaybot.channels.directory import ChannelDirectory
from relaybot.commands.introspect import introspection_handler
from relaybot.context import MessageContext
from relaybot.definitions import MessageHandler
from relaybot.registry import HandlerRegistry

log = logging.getLogger(__name__)

GENERIC_ERROR_REPLY = "Error occurred"


class DispatchOutcome(str, Enum):
    """Terminal state of one message dispatch."""

    SKIPPED = "skipped"        # own/bot message or no text
    UNMATCHED = "unmatched"    # no chain for the command token
    COMPLETED = "completed"
    FAILED = "failed"


class EventRouter:
    """Routes messages to handler chains and keeps the channel directory fresh.

    Args:
        client: The connected client; ``client.user`` identifies the bot.
        registry: Sealed handler registry.
        directory: Live channel directory shared with scheduled jobs.
        extraction: ``"unbounded"`` takes the first word of the message;
            ``"bounded"`` only looks at the first ``max_command_length + 1``
            characters.
        max_command_length: Limit for bounded extraction.
        introspection_command: Reserved text answered with the command list
            when no chain is registered under it.  Empty disables it.
        ignore_bots: Skip every bot author, not only the bot itself.
    """

    def __init__(
        self,
        client: discord.Client,
        registry: HandlerRegistry,
        directory: ChannelDirectory,
        *,
        extraction: Literal["unbounded", "bounded"] = "unbounded",
        max_command_length: int = 20,
        introspection_command: str = "!commands",
        ignore_bots: bool = True,
    ) -> None:
        self.client = client
        self.registry = registry
        self.directory = directory
        self.extraction = extraction
        self.max_command_length = max_command_length
        self.introspection_command = introspection_command
        self.ignore_bots = ignore_bots
        self.started_at: datetime | None = None
        self._introspect = introspection_handler(lambda: self.registry.commands, self.uptime)
        self._background: set[asyncio.Task[None]] = set()
        self._steps: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def extract_command(self, text: str) -> str:
        """Return the command token of *text* (empty if there is none)."""
        if self.extraction == "bounded":
            text = text[: self.max_command_length + 1]
        parts = text.split(None, 1)
        return parts[0] if parts else ""

    async def dispatch(self, message: discord.Message) -> DispatchOutcome:
        """Route one inbound message.  Never raises for handler failures."""
        if self._should_ignore(message):
            return DispatchOutcome.SKIPPED

        self._remember_source_channel(message)

        text = message.content
        command = self.extract_command(text)
        handlers: Sequence[MessageHandler] = self.registry.chain_for(command) if command else ()
        if not handlers:
            if self.introspection_command and text.strip() == self.introspection_command:
                command, handlers = self.introspection_command, (self._introspect,)
            else:
                return DispatchOutcome.UNMATCHED

        content = text.lstrip()[len(command):].strip()
        ctx = MessageContext(
            self.client, self.directory.snapshot(), message, command, content,
        )
        log.debug("Dispatching %r (%d handler(s))", command, len(handlers))
        return await self.run(ctx, handlers)

    async def run(self, ctx: MessageContext, handlers: Sequence[MessageHandler]) -> DispatchOutcome:
        """Run a chain, reporting a failure back to the message author."""
        try:
            await run_chain(ctx, handlers, spawn=self._track, on_step=self._register_step)
        except Exception as exc:
            log.warning("Command %r failed: %s", ctx.command, exc, exc_info=True)
            await self.report_error(ctx, exc)
            return DispatchOutcome.FAILED
        return DispatchOutcome.COMPLETED

    async def report_error(self, ctx: MessageContext, exc: BaseException) -> None:
        """Reply with the error message.  A failed reply is only logged."""
        try:
            await ctx.reply(str(exc) or GENERIC_ERROR_REPLY)
        except Exception:
            log.exception("Could not deliver error reply for %r", ctx.command)

    def _should_ignore(self, message: discord.Message) -> bool:
        author = message.author
        me = self.client.user
        if me is not None and author.id == me.id:
            return True
        if self.ignore_bots and author.bot:
            return True
        return not message.content

    def _remember_source_channel(self, message: discord.Message) -> None:
        channel = message.channel
        name = getattr(channel, "name", None)
        # DMs and group DMs have no name to address them by.
        if isinstance(name, str) and name:
            self.directory.remember_if_absent(name, str(channel.id))

    # ------------------------------------------------------------------
    # Channel lifecycle
    # ------------------------------------------------------------------

    def on_channels_changed(self, channels: Iterable[Any]) -> None:
        """Rebuild the directory after a channel was created, updated or deleted."""
        self.directory.rebuild(channels)

    def on_ready(self, channels: Iterable[Any]) -> None:
        """Rebuild the directory and record the connection time."""
        self.started_at = datetime.now(UTC)
        self.directory.rebuild(channels)

    def uptime(self) -> timedelta | None:
        if self.started_at is None:
            return None
        return datetime.now(UTC) - self.started_at

    # ------------------------------------------------------------------
    # Background handler tasks
    # ------------------------------------------------------------------

    @property
    def background_count(self) -> int:
        return len(self._background)

    @property
    def in_flight_count(self) -> int:
        return len(self._steps)

    async def close(self) -> None:
        """Cancel every handler still running, yielded or not."""
        pending = self._background | self._steps
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._background.clear()
        self._steps.clear()

    def _track(self, task: asyncio.Task[None]) -> None:
        self._background.add(task)
        task.add_done_callback(self._task_done)

    def _register_step(self, task: asyncio.Task[None]) -> None:
        # Failures of steps that did not yield surface through run_chain.
        self._steps.add(task)
        task.add_done_callback(self._steps.discard)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception():
            log.error(
                "Background handler failed: %s", task.exception(), exc_info=task.exception(),
            )
