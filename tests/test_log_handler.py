"""Tests for the channel log handler."""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from relaybot.channels.directory import ChannelDirectory
from relaybot.channels.log_handler import ChannelLogHandler, _chunk_lines


def _record(name, level, msg):
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


@pytest.fixture
def log_channel(client):
    channel = MagicMock()
    channel.send = AsyncMock()
    client.get_channel.return_value = channel
    return channel


def test_chunk_lines_respects_limit():
    chunks = _chunk_lines(["a" * 10, "b" * 10, "c" * 10], limit=22)
    assert chunks == ["a" * 10 + "\n" + "b" * 10, "c" * 10]


@pytest.mark.asyncio
async def test_warnings_are_flushed_to_channel(client, log_channel):
    directory = ChannelDirectory()
    directory.remember_if_absent("bot-logs", "77")
    handler = ChannelLogHandler(client, directory, "bot-logs")

    handler.emit(_record("relaybot.router", logging.WARNING, "chain failed"))
    handler.emit(_record("relaybot.router", logging.INFO, "dispatching"))
    handler.emit(_record("relaybot.bot", logging.INFO, "ready"))
    await handler.flush_now()

    client.get_channel.assert_called_with(77)
    sent = log_channel.send.await_args.args[0]
    assert "chain failed" in sent
    assert "ready" in sent
    assert "dispatching" not in sent


@pytest.mark.asyncio
async def test_unknown_log_channel_drops_buffer(client, log_channel):
    handler = ChannelLogHandler(client, ChannelDirectory(), "bot-logs")
    handler.emit(_record("relaybot.router", logging.ERROR, "lost"))
    await handler.flush_now()

    log_channel.send.assert_not_awaited()
    await handler.flush_now()
    log_channel.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_and_stop_flushes_remaining(client, log_channel):
    directory = ChannelDirectory()
    directory.remember_if_absent("bot-logs", "77")
    handler = ChannelLogHandler(client, directory, "bot-logs")
    handler.start()
    handler.emit(_record("relaybot.jobs", logging.ERROR, "tick failed"))
    await handler.stop()

    log_channel.send.assert_awaited_once()
