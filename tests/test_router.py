"""Tests for message routing, error reporting and directory upkeep."""

import asyncio
import logging

import pytest

from relaybot.channels.directory import ChannelDirectory
from relaybot.definitions import CommandDefinition
from relaybot.registry import HandlerRegistry
from relaybot.router import DispatchOutcome, EventRouter

BOT_ID = 1  # matches the client fixture


async def pong(ctx):
    await ctx.reply("pong")


def build_router(client, *definitions, **kwargs):
    registry = HandlerRegistry()
    for definition in definitions:
        registry.register_command(definition)
    registry.seal()
    return EventRouter(client, registry, ChannelDirectory(), **kwargs)


@pytest.mark.asyncio
async def test_ping_replies_pong_once(client, make_message):
    router = build_router(client, CommandDefinition("!ping", [pong]))
    message = make_message("!ping")

    outcome = await router.dispatch(message)

    assert outcome is DispatchOutcome.COMPLETED
    message.reply.assert_awaited_once_with("pong")


@pytest.mark.asyncio
async def test_own_messages_never_dispatch(client, make_message):
    router = build_router(client, CommandDefinition("!ping", [pong]))
    message = make_message("!ping", author_id=BOT_ID)

    assert await router.dispatch(message) is DispatchOutcome.SKIPPED
    assert await router.dispatch(message) is DispatchOutcome.SKIPPED
    message.reply.assert_not_awaited()
    assert router.directory.lookup("general") is None


@pytest.mark.asyncio
async def test_other_bots_ignored_unless_allowed(client, make_message):
    message = make_message("!ping", author_id=7, bot=True)

    strict = build_router(client, CommandDefinition("!ping", [pong]))
    assert await strict.dispatch(message) is DispatchOutcome.SKIPPED

    lenient = build_router(client, CommandDefinition("!ping", [pong]), ignore_bots=False)
    assert await lenient.dispatch(message) is DispatchOutcome.COMPLETED


@pytest.mark.asyncio
async def test_empty_content_is_skipped(client, make_message):
    router = build_router(client, CommandDefinition("!ping", [pong]))
    assert await router.dispatch(make_message("")) is DispatchOutcome.SKIPPED


@pytest.mark.asyncio
async def test_command_match_is_case_sensitive(client, make_message):
    router = build_router(client, CommandDefinition("!ping", [pong]))
    message = make_message("!PING")

    assert await router.dispatch(message) is DispatchOutcome.UNMATCHED
    message.reply.assert_not_awaited()


@pytest.mark.asyncio
async def test_source_channel_is_remembered(client, make_message):
    router = build_router(client)
    await router.dispatch(make_message("hello there", channel_name="random", channel_id=555))
    assert router.directory.lookup("random") == "555"


@pytest.mark.asyncio
async def test_content_has_command_removed_and_trimmed(client, make_message):
    seen = {}

    async def capture(ctx):
        seen["command"] = ctx.command
        seen["content"] = ctx.content
        seen["read_only"] = ctx.channels.read_only

    router = build_router(client, CommandDefinition("!echo", [capture]))
    await router.dispatch(make_message("  !echo   hello   world  "))

    assert seen == {"command": "!echo", "content": "hello   world", "read_only": True}


@pytest.mark.asyncio
async def test_first_word_only_is_the_token(client, make_message):
    router = build_router(client, CommandDefinition("!ping", [pong]))
    assert await router.dispatch(make_message("!ping\nextra")) is DispatchOutcome.COMPLETED
    assert await router.dispatch(make_message("!pingextra")) is DispatchOutcome.UNMATCHED


def test_bounded_extraction_truncates_long_tokens(client):
    bounded = build_router(client, extraction="bounded", max_command_length=5)
    unbounded = build_router(client)

    assert bounded.extract_command("!ping hello") == "!ping"
    assert bounded.extract_command("!pingpong") == "!pingp"
    assert unbounded.extract_command("!pingpong") == "!pingpong"
    assert unbounded.extract_command("   ") == ""


@pytest.mark.asyncio
async def test_handler_error_is_replied(client, make_message):
    async def fail(ctx):
        raise ValueError("Usage: !echo <text>")

    router = build_router(client, CommandDefinition("!echo", [fail]))
    message = make_message("!echo")

    assert await router.dispatch(message) is DispatchOutcome.FAILED
    message.reply.assert_awaited_once_with("Usage: !echo <text>")


@pytest.mark.asyncio
async def test_error_without_message_gets_generic_reply(client, make_message):
    async def fail(ctx):
        raise RuntimeError()

    router = build_router(client, CommandDefinition("!x", [fail]))
    message = make_message("!x")
    await router.dispatch(message)
    message.reply.assert_awaited_once_with("Error occurred")


@pytest.mark.asyncio
async def test_failed_error_reply_is_swallowed(client, make_message, caplog):
    async def fail(ctx):
        raise ValueError("boom")

    router = build_router(client, CommandDefinition("!x", [fail]))
    message = make_message("!x")
    message.reply.side_effect = RuntimeError("missing permissions")

    with caplog.at_level(logging.ERROR):
        outcome = await router.dispatch(message)

    assert outcome is DispatchOutcome.FAILED
    assert "Could not deliver error reply" in caplog.text


@pytest.mark.asyncio
async def test_failing_first_handler_skips_second(client, make_message):
    ran = []

    async def h1(ctx):
        raise ValueError("nope")

    async def h2(ctx):
        ran.append("h2")

    router = build_router(client, CommandDefinition("!x", [h1, h2]))
    message = make_message("!x")
    await router.dispatch(message)

    assert ran == []
    message.reply.assert_awaited_once_with("nope")


@pytest.mark.asyncio
async def test_yielded_handlers_are_tracked_until_done(client, make_message):
    gate = asyncio.Event()

    async def slow(ctx):
        ctx.next()
        await gate.wait()

    router = build_router(client, CommandDefinition("!x", [slow, pong]))
    message = make_message("!x")

    assert await router.dispatch(message) is DispatchOutcome.COMPLETED
    message.reply.assert_awaited_once_with("pong")
    assert router.background_count == 1

    gate.set()
    await asyncio.sleep(0.01)
    assert router.background_count == 0


@pytest.mark.asyncio
async def test_close_cancels_steps_still_running(client, make_message):
    started = asyncio.Event()

    async def stuck(ctx):
        started.set()
        await asyncio.Event().wait()

    router = build_router(client, CommandDefinition("!x", [stuck, pong]))
    message = make_message("!x")
    dispatch = asyncio.create_task(router.dispatch(message))
    await started.wait()
    assert router.in_flight_count == 1

    await router.close()

    assert router.in_flight_count == 0
    with pytest.raises(asyncio.CancelledError):
        await dispatch
    message.reply.assert_not_awaited()


@pytest.mark.asyncio
async def test_introspection_lists_commands(client, make_message):
    router = build_router(client, CommandDefinition("!ping", [pong]))
    message = make_message("!commands")

    assert await router.dispatch(message) is DispatchOutcome.COMPLETED
    reply = message.reply.await_args.args[0]
    assert "`!ping`" in reply
    assert "not connected yet" in reply


@pytest.mark.asyncio
async def test_registered_command_overrides_introspection(client, make_message):
    async def custom(ctx):
        await ctx.reply("custom")

    router = build_router(client, CommandDefinition("!commands", [custom]))
    message = make_message("!commands")
    await router.dispatch(message)
    message.reply.assert_awaited_once_with("custom")


@pytest.mark.asyncio
async def test_introspection_can_be_disabled(client, make_message):
    router = build_router(client, introspection_command="")
    assert await router.dispatch(make_message("!commands")) is DispatchOutcome.UNMATCHED


def test_ready_rebuilds_directory_and_records_start(client, text_channel):
    router = build_router(client)
    router.directory.remember_if_absent("stale", "1")

    router.on_ready([text_channel("general", 123)])

    assert router.started_at is not None
    assert router.uptime() is not None
    assert router.directory.lookup("general") == "123"
    assert router.directory.lookup("stale") is None


def test_channel_change_rebuilds_directory(client, text_channel):
    router = build_router(client)
    router.on_channels_changed([text_channel("general", 1)])
    router.on_channels_changed([text_channel("general-chat", 1)])

    assert router.directory.lookup("general") is None
    assert router.directory.lookup("general-chat") == "1"
