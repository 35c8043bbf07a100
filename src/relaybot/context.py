"""Per-invocation contexts handed to handlers.

Every handler receives exactly one argument: a context.  Message handlers get a
:class:`MessageContext` bound to the triggering :class:`discord.Message`; cron
jobs and adapter-bound handlers get a :class:`JobContext` that optionally
carries a typed payload.  Both expose the connected client and the channel
directory, so handlers can write to a channel by name::

    async def announce(ctx: JobContext) -> None:
        await ctx.send_to("general", "Good morning!")

Message handlers can hand control to the next handler in their chain before
they finish by calling :meth:`MessageContext.next`::

    async def audit(ctx: MessageContext) -> None:
        ctx.next()                      # downstream handlers start now
        await write_audit_record(ctx.content)
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generic, TypeVar

import discord

from relaybot.channels.directory import ChannelDirectory, resolve_channel
from relaybot.exceptions import ChannelNotFoundError

log = logging.getLogger(__name__)

T = TypeVar("T")

ErrorCallback = Callable[[Exception], Any]

# Continue signal of the handler running in the current task.  Set by the
# chain runner inside each handler's task, so ``next()`` always advances the
# round that belongs to the caller even after later rounds have started.
current_signal: contextvars.ContextVar[asyncio.Future[None] | None] = contextvars.ContextVar(
    "relaybot_current_signal", default=None,
)


class ExecutionContext:
    """State shared by every context variant.

    Args:
        client: The connected Discord client.
        channels: Channel directory used to resolve names in :meth:`send_to`.
    """

    def __init__(self, client: discord.Client, channels: ChannelDirectory) -> None:
        self._client = client
        self._channels = channels

    @property
    def client(self) -> discord.Client:
        return self._client

    @property
    def channels(self) -> ChannelDirectory:
        return self._channels

    def get_channel_id(self, channel_name: str) -> str | None:
        """Return the id of *channel_name*, or ``None`` if it is unknown."""
        return self._channels.lookup(channel_name)

    async def send_to(
        self,
        channel_name: str,
        content: str,
        on_error: ErrorCallback | None = None,
    ) -> discord.Message | None:
        """Send *content* to the channel called *channel_name*.

        An unknown name is not raised: a :class:`ChannelNotFoundError` is passed
        to *on_error* (or logged when no callback is given) and ``None`` is
        returned.  Transport failures also go to *on_error* when it is given;
        otherwise they propagate.
        """
        channel_id = self._channels.lookup(channel_name)
        if channel_id is None:
            miss = ChannelNotFoundError(channel_name)
            if on_error is not None:
                await _call_error_callback(on_error, miss)
            else:
                log.warning("%s", miss)
            return None

        try:
            channel = await resolve_channel(self._client, channel_id)
            return await channel.send(content)
        except Exception as exc:
            if on_error is None:
                raise
            await _call_error_callback(on_error, exc)
            return None


class MessageContext(ExecutionContext):
    """Context for handlers triggered by an inbound message.

    Attributes:
        event: The triggering message.
        command: The command token that selected this chain.
        content: Message text with the command token removed, stripped.
    """

    def __init__(
        self,
        client: discord.Client,
        channels: ChannelDirectory,
        event: discord.Message,
        command: str,
        content: str,
    ) -> None:
        super().__init__(client, channels)
        self.event = event
        self.command = command
        self.content = content
        self._round: asyncio.Future[None] | None = None

    def is_bot(self) -> bool:
        """Return ``True`` if the message author is a bot account."""
        return bool(self.event.author.bot)

    async def reply(self, text: str) -> discord.Message:
        """Reply to the triggering message."""
        return await self.event.reply(text)

    async def reply_file(
        self,
        file: discord.File | str | Path,
        content: str | None = None,
    ) -> discord.Message:
        """Reply with a file attachment, optionally with accompanying text."""
        if not isinstance(file, discord.File):
            file = discord.File(os.fspath(file))
        return await self.event.reply(content, file=file)

    async def typing(self) -> None:
        """Show the typing indicator in the source channel."""
        await self.event.channel.typing()

    def next(self) -> None:
        """Let the next handler in the chain start now.

        The caller keeps running in the background.  Calling it more than once
        in the same round has no further effect.
        """
        signal = current_signal.get() or self._round
        if signal is not None and not signal.done():
            signal.set_result(None)

    def open_round(self) -> asyncio.Future[None]:
        """Create the continue signal for the next chain step."""
        self._round = asyncio.get_running_loop().create_future()
        return self._round


class JobContext(ExecutionContext, Generic[T]):
    """Context for scheduled jobs and adapter-bound handlers.

    Job contexts see the live channel directory, so a job ticking hours after
    startup resolves names against the latest rebuild.

    Attributes:
        name: Name of the job or adapter event this context belongs to.
    """

    def __init__(
        self,
        client: discord.Client,
        channels: ChannelDirectory,
        name: str,
        data: T | None = None,
    ) -> None:
        super().__init__(client, channels)
        self.name = name
        self._data = data

    def set_data(self, data: T) -> None:
        self._data = data

    def get_data(self) -> T | None:
        return self._data

    @property
    def data(self) -> T | None:
        return self._data


async def _call_error_callback(callback: ErrorCallback, exc: Exception) -> None:
    result = callback(exc)
    if asyncio.iscoroutine(result):
        await result
