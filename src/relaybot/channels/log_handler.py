"""Logging handler that pipes Python log records to a named Discord channel.

Buffers log lines and flushes them periodically so we don't spam Discord with
one message per log line.  The target channel is resolved by name through the
:class:`~relaybot.channels.directory.ChannelDirectory` on every flush, so a
renamed or recreated log channel is picked up after the next rebuild.

Usage::

    handler = ChannelLogHandler(client, directory, "bot-logs")
    handler.start()  # begin background flush loop
    logging.getLogger("relaybot").addHandler(handler)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Final

from relaybot.channels.directory import ChannelDirectory, resolve_channel

# Max characters per Discord message (leave room for code block markers)
_MAX_MSG: Final[int] = 1900
# Flush interval in seconds
_FLUSH_INTERVAL: Final[float] = 5.0
# Lines longer than this are truncated
_MAX_LINE: Final[int] = 200


class ChannelLogHandler(logging.Handler):
    """Buffers records and sends them to a Discord channel in code blocks.

    Only WARNING+ and INFO from selected loggers are forwarded.
    """

    _INFO_LOGGERS: Final[frozenset[str]] = frozenset({
        "relaybot.bot",
        "relaybot.jobs",
    })

    def __init__(self, client: Any, directory: ChannelDirectory, channel_name: str) -> None:
        super().__init__(level=logging.INFO)
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        self._client = client
        self._directory = directory
        self.channel_name = channel_name
        self._buffer: list[str] = []
        self._task: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def start(self) -> None:
        """Start the background flush loop.  Call from the running event loop."""
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(self._flush_loop(), name="channel-log-flush")

    async def stop(self) -> None:
        """Flush remaining buffer and cancel the background task."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.flush_now()

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno < logging.WARNING and record.name not in self._INFO_LOGGERS:
            return

        line = self.format(record)
        if len(line) > _MAX_LINE:
            line = line[:_MAX_LINE - 3] + "..."

        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._buffer.append, line)
        else:
            self._buffer.append(line)

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(_FLUSH_INTERVAL)
            await self.flush_now()

    async def flush_now(self) -> None:
        """Send buffered lines to the log channel."""
        if not self._buffer:
            return
        lines = self._buffer[:]
        self._buffer.clear()

        channel_id = self._directory.lookup(self.channel_name)
        if channel_id is None:
            # Nowhere to send; drop rather than grow without bound.
            return

        for chunk in _chunk_lines(lines, _MAX_MSG):
            try:
                channel = await resolve_channel(self._client, channel_id)
                await channel.send(f"```\n{chunk}\n```")
            except Exception:
                # Logging here would recurse into this handler.
                return


def _chunk_lines(lines: list[str], limit: int) -> list[str]:
    """Group *lines* into newline-joined chunks no longer than *limit*."""
    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    for line in lines:
        if current_len + len(line) + 1 > limit and current:
            chunks.append("\n".join(current))
            current = []
            current_len = 0
        current.append(line)
        current_len += len(line) + 1
    if current:
        chunks.append("\n".join(current))
    return chunks
