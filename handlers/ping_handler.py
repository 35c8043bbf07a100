"""Example handler module.

Any file below ``HANDLER_PATH`` whose name ends with ``HANDLER_PATTERN`` is
imported at startup; the definitions it creates at module level are
registered.
"""

from __future__ import annotations

import logging

from relaybot import (
    AdapterDefinition,
    CommandDefinition,
    EventAdapter,
    JobContext,
    JobDefinition,
    MessageContext,
)

log = logging.getLogger(__name__)


async def log_usage(ctx: MessageContext) -> None:
    ctx.next()
    log.info("%s used %s", ctx.event.author, ctx.command)


async def pong(ctx: MessageContext) -> None:
    await ctx.reply("pong")


async def echo(ctx: MessageContext) -> None:
    if not ctx.content:
        raise ValueError("Usage: !echo <text>")
    await ctx.typing()
    await ctx.reply(ctx.content)


async def morning(ctx: JobContext) -> None:
    await ctx.send_to(
        "general", "Good morning!",
        on_error=lambda exc: log.warning("Morning greeting skipped: %s", exc),
    )


async def announce_deploy(ctx: JobContext[dict]) -> None:
    data = ctx.get_data() or {}
    await ctx.send_to("deploys", f"Deployed {data.get('service')} {data.get('version')}")


deploys: EventAdapter[dict] = EventAdapter()

ping = CommandDefinition("!ping", [log_usage, pong])
echo_command = CommandDefinition("!echo", [echo])
good_morning = JobDefinition("good-morning", "0 9 * * 1-5", morning)
deploy_announcements = AdapterDefinition("deploy", deploys, announce_deploy)
