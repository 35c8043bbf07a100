"""Built-in introspection command.

Answers the reserved introspection message (``!commands`` by default) with the
registered command names and how long the bot has been connected.  It only runs
when no handler module registered a chain under the same token.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

from relaybot.context import MessageContext
from relaybot.definitions import MessageHandler


def format_uptime(uptime: timedelta | None) -> str:
    if uptime is None:
        return "not connected yet"
    total = int(uptime.total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m {seconds}s"


def build_listing(commands: list[str], uptime: timedelta | None) -> str:
    """Return the reply text for the introspection command."""
    if commands:
        listing = "\n".join(f"`{name}`" for name in commands)
        body = f"**Commands ({len(commands)})**\n{listing}"
    else:
        body = "No commands registered."
    return f"{body}\nUptime: {format_uptime(uptime)}"


def introspection_handler(
    list_commands: Callable[[], list[str]],
    uptime: Callable[[], timedelta | None],
) -> MessageHandler:
    """Build the handler; arguments are read at call time, not build time."""

    async def handler(ctx: MessageContext) -> None:
        await ctx.reply(build_listing(list_commands(), uptime()))

    return handler
