"""Shared fixtures for the relaybot test suite."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

BOT_USER_ID = 1


@pytest.fixture
def text_channel():
    """Factory for stand-in guild channels as yielded by ``get_all_channels()``."""

    def _make(name, channel_id, kind=discord.ChannelType.text):
        return SimpleNamespace(name=name, id=channel_id, type=kind)

    return _make


@pytest.fixture
def client():
    """Mock connected Discord client."""
    client = MagicMock()
    client.user = SimpleNamespace(id=BOT_USER_ID)
    client.get_channel = MagicMock(return_value=None)
    client.fetch_channel = AsyncMock()
    client.get_all_channels = MagicMock(return_value=[])
    return client


@pytest.fixture
def make_message():
    """Factory for mock inbound messages."""

    def _make(
        content,
        author_id=42,
        bot=False,
        channel_name="general",
        channel_id=100,
    ):
        message = MagicMock()
        message.content = content
        message.author = SimpleNamespace(id=author_id, bot=bot)
        message.channel = MagicMock()
        message.channel.name = channel_name
        message.channel.id = channel_id
        message.channel.typing = AsyncMock()
        message.reply = AsyncMock()
        return message

    return _make
