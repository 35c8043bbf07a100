"""Registry of command chains, scheduled jobs and adapter subscriptions.

The registry is filled once during startup from the definitions found by
:mod:`relaybot.discovery`, then sealed.  After :meth:`HandlerRegistry.seal`
it is read-only, so dispatching needs no locking.

Usage::

    registry = HandlerRegistry(tz=settings.timezone)
    registry.load(definitions, client=bot, directory=directory,
                  on_registered=lambda name: log.info("Registered %s", name))
    registry.seal()
    registry.chain_for("!ping")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, tzinfo
from typing import Any

import discord

from relaybot.channels.directory import ChannelDirectory
from relaybot.context import JobContext
from relaybot.definitions import (
    AdapterDefinition,
    CommandDefinition,
    DefinitionKind,
    HandlerDefinition,
    JobDefinition,
    MessageHandler,
)
from relaybot.exceptions import RegistrySealedError
from relaybot.jobs import ScheduledJob

log = logging.getLogger(__name__)


class HandlerRegistry:
    """Command name -> handler chain, and job name -> scheduled job.

    Registering a name that already exists replaces the previous entry.
    Command names and job names live in separate namespaces.
    """

    def __init__(self, tz: tzinfo = UTC) -> None:
        self._commands: dict[str, tuple[MessageHandler, ...]] = {}
        self._jobs: dict[str, ScheduledJob] = {}
        self._adapters: dict[str, AdapterDefinition] = {}
        self._tz = tz
        self._sealed: bool = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def chain_for(self, command: str) -> tuple[MessageHandler, ...]:
        """Return the handler chain for *command* (empty if unregistered)."""
        return self._commands.get(command, ())

    @property
    def commands(self) -> list[str]:
        return sorted(self._commands)

    @property
    def jobs(self) -> dict[str, ScheduledJob]:
        return dict(self._jobs)

    @property
    def adapters(self) -> dict[str, AdapterDefinition]:
        return dict(self._adapters)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """Reject further registrations."""
        self._sealed = True

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_command(self, definition: CommandDefinition) -> None:
        self._check_open()
        if definition.command in self._commands:
            log.warning("Command %r registered twice; keeping the latest chain.", definition.command)
        self._commands[definition.command] = tuple(definition.handlers)

    def register_job(self, job: ScheduledJob) -> None:
        self._check_open()
        if job.name in self._jobs:
            log.warning("Job %r registered twice; keeping the latest definition.", job.name)
        self._jobs[job.name] = job

    def load(
        self,
        definitions: Iterable[HandlerDefinition],
        *,
        client: discord.Client,
        directory: ChannelDirectory,
        on_registered: Callable[[str], Any] | None = None,
    ) -> None:
        """Register every definition in order.  An empty iterable is a no-op.

        Args:
            definitions: Definitions as yielded by discovery.
            client: Client bound into job and adapter contexts.
            directory: The live directory bound into job and adapter contexts.
            on_registered: Called with each registered command name.
        """
        binders: dict[DefinitionKind, Callable[..., None]] = {
            DefinitionKind.COMMAND: self._bind_command,
            DefinitionKind.JOB: self._bind_job,
            DefinitionKind.ADAPTER: self._bind_adapter,
        }
        count = 0
        for definition in definitions:
            binders[definition.kind](definition, client, directory, on_registered)
            count += 1
        if count:
            log.info(
                "Loaded %d definition(s): %d command(s), %d job(s), %d adapter(s).",
                count, len(self._commands), len(self._jobs), len(self._adapters),
            )

    def _bind_command(
        self,
        definition: CommandDefinition,
        client: discord.Client,
        directory: ChannelDirectory,
        on_registered: Callable[[str], Any] | None,
    ) -> None:
        self.register_command(definition)
        if on_registered is not None:
            on_registered(definition.command)

    def _bind_job(
        self,
        definition: JobDefinition,
        client: discord.Client,
        directory: ChannelDirectory,
        on_registered: Callable[[str], Any] | None,
    ) -> None:
        context: JobContext[Any] = JobContext(client, directory, definition.name)
        self.register_job(ScheduledJob(definition, context, tz=self._tz))

    def _bind_adapter(
        self,
        definition: AdapterDefinition,
        client: discord.Client,
        directory: ChannelDirectory,
        on_registered: Callable[[str], Any] | None,
    ) -> None:
        self._check_open()

        async def listener(data: Any) -> None:
            ctx: JobContext[Any] = JobContext(client, directory, definition.name, data)
            await definition.handler(ctx)

        definition.adapter.bind(definition.name)
        definition.adapter.on(definition.name, listener)
        self._adapters[definition.name] = definition

    def _check_open(self) -> None:
        if self._sealed:
            raise RegistrySealedError("Handler registry is sealed; load definitions before starting.")
