"""relaybot -- command dispatch with chained handlers for Discord bots.

Public API:
    :class:`RelayBot` -- the Discord client.
    :class:`EventRouter` -- message and channel-lifecycle routing.
    :class:`HandlerRegistry` -- command chains and scheduled jobs.
    :class:`ChannelDirectory` -- channel name -> id cache.
    :class:`MessageContext`, :class:`JobContext` -- handler contexts.
    :class:`CommandDefinition`, :class:`JobDefinition`,
    :class:`AdapterDefinition` -- what handler modules export.
    :class:`EventAdapter` -- feeds external events into handlers.
"""

from relaybot.adapter import EventAdapter
from relaybot.bot import RelayBot
from relaybot.channels.directory import ChannelDirectory
from relaybot.context import ExecutionContext, JobContext, MessageContext
from relaybot.definitions import (
    AdapterDefinition,
    CommandDefinition,
    DefinitionKind,
    JobDefinition,
)
from relaybot.registry import HandlerRegistry
from relaybot.router import DispatchOutcome, EventRouter

__all__ = [
    "AdapterDefinition",
    "ChannelDirectory",
    "CommandDefinition",
    "DefinitionKind",
    "DispatchOutcome",
    "EventAdapter",
    "EventRouter",
    "ExecutionContext",
    "HandlerRegistry",
    "JobContext",
    "JobDefinition",
    "MessageContext",
    "RelayBot",
]
