"""Bridge from arbitrary application events into relaybot handlers.

An :class:`EventAdapter` lets code outside Discord (a webhook receiver, a queue
consumer, another task) trigger handlers that can talk to Discord.  The adapter
is declared in a handler module together with an
:class:`~relaybot.definitions.AdapterDefinition`; the registry binds it to the
definition's event name at load time, after which :meth:`EventAdapter.emit`
runs the handler with the payload::

    deploys: EventAdapter[dict] = EventAdapter()
    on_deploy = AdapterDefinition("deploy", deploys, announce_deploy)

    # elsewhere, inside the running event loop
    deploys.emit({"service": "api", "version": "1.4.2"})
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Awaitable[None]]


class EventAdapter(Generic[T]):
    """Named async event emitter carrying payloads of type ``T``."""

    def __init__(self) -> None:
        self._event_name: str | None = None
        self._listeners: dict[str, list[Listener[T]]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def event_name(self) -> str | None:
        return self._event_name

    def bind(self, event_name: str) -> None:
        """Set the event name :meth:`emit` publishes under."""
        self._event_name = event_name

    def on(self, event_name: str, listener: Listener[T]) -> None:
        """Subscribe *listener* to *event_name*."""
        self._listeners.setdefault(event_name, []).append(listener)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    def emit(self, data: T) -> bool:
        """Schedule every listener of the bound event with *data*.

        Must be called from the running event loop.  Returns ``True`` if at
        least one listener was scheduled.
        """
        if self._event_name is None:
            log.warning("EventAdapter.emit() called before the adapter was bound")
            return False
        listeners = list(self._listeners.get(self._event_name, ()))
        if not listeners:
            return False
        loop = asyncio.get_running_loop()
        for listener in listeners:
            task = loop.create_task(listener(data))
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
        return True

    async def drain(self) -> None:
        """Wait for every scheduled listener to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            log.error(
                "Listener for %r failed: %s", self._event_name, task.exception(),
                exc_info=task.exception(),
            )
