"""Handler definitions exported by handler modules.

A handler module declares what it contributes with module-level definition
objects::

    from relaybot.definitions import CommandDefinition, JobDefinition

    ping = CommandDefinition("!ping", [reply_pong])
    nightly = JobDefinition("nightly-report", "0 3 * * *", post_report)

Each definition carries an explicit :class:`DefinitionKind` discriminant set by
its constructor; the registry dispatches on that field once at load time.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

from croniter import croniter

from relaybot.exceptions import DefinitionError

if TYPE_CHECKING:
    from relaybot.adapter import EventAdapter
    from relaybot.context import JobContext, MessageContext

MessageHandler = Callable[["MessageContext"], Awaitable[None]]
JobHandler = Callable[["JobContext[Any]"], Awaitable[None]]


class DefinitionKind(str, Enum):
    COMMAND = "command"
    JOB = "job"
    ADAPTER = "adapter"


@dataclass(frozen=True)
class CommandDefinition:
    """An ordered chain of handlers bound to a command token."""

    command: str
    handlers: Sequence[MessageHandler]
    kind: DefinitionKind = field(default=DefinitionKind.COMMAND, init=False)

    def __post_init__(self) -> None:
        if not self.command or self.command != self.command.strip() or len(self.command.split()) != 1:
            raise DefinitionError(
                f"Command must be a single non-empty word, got {self.command!r}"
            )
        if not self.handlers:
            raise DefinitionError(f"Command {self.command!r} has no handlers")
        object.__setattr__(self, "handlers", tuple(self.handlers))

    @property
    def name(self) -> str:
        return self.command


@dataclass(frozen=True)
class JobDefinition:
    """A handler fired on a cron schedule."""

    name: str
    schedule: str
    handler: JobHandler
    kind: DefinitionKind = field(default=DefinitionKind.JOB, init=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise DefinitionError("Job name must not be empty")
        if not croniter.is_valid(self.schedule):
            raise DefinitionError(
                f"Invalid cron expression for job {self.name!r}: {self.schedule!r}"
            )


@dataclass(frozen=True)
class AdapterDefinition:
    """A handler run for every payload an :class:`EventAdapter` emits."""

    name: str
    adapter: EventAdapter[Any]
    handler: JobHandler
    kind: DefinitionKind = field(default=DefinitionKind.ADAPTER, init=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise DefinitionError("Adapter event name must not be empty")


HandlerDefinition = Union[CommandDefinition, JobDefinition, AdapterDefinition]

DEFINITION_TYPES: tuple[type, ...] = (CommandDefinition, JobDefinition, AdapterDefinition)
