"""Handler chain execution with explicit continuation.

Handlers registered under one command run in registration order.  Each step is
a race between two awaitables:

* the handler's own completion (success or failure), and
* the handler's continue signal, raised by calling ``ctx.next()``.

Whichever finishes first ends the step.  A handler that calls ``next()`` keeps
running in the background while the next handler starts; a handler that
finishes without calling it simply ends its step.  A failure that ends a step
aborts the rest of the chain and propagates to the caller.

There is no timeout: a handler that neither returns nor calls ``next()``
stalls its chain.  Cancelling the chain cancels the step it is waiting on.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from relaybot.context import MessageContext, current_signal
from relaybot.definitions import MessageHandler

log = logging.getLogger(__name__)

Spawner = Callable[["asyncio.Task[None]"], None]


async def run_chain(
    ctx: MessageContext,
    handlers: Sequence[MessageHandler],
    spawn: Spawner | None = None,
    on_step: Spawner | None = None,
) -> None:
    """Drive *handlers* to completion against a shared *ctx*.

    Args:
        ctx: Context shared by every handler of the chain.
        handlers: The chain, in registration order.
        spawn: Receives handler tasks that called ``next()`` and are still
            running, so the owner can track them.  Defaults to logging their
            eventual failure.
        on_step: Receives every handler task as soon as it starts, so the
            owner can cancel steps still in flight on shutdown.

    Raises:
        Exception: Whatever the first handler that failed before calling
            ``next()`` raised.
        asyncio.CancelledError: The chain was cancelled.  The running step
            is cancelled with it.
    """
    for index, handler in enumerate(handlers):
        signal = ctx.open_round()
        task = asyncio.create_task(
            _run_step(handler, ctx, signal),
            name=f"chain-{ctx.command}-{index}",
        )
        if on_step is not None:
            on_step(task)
        try:
            await asyncio.wait({task, signal}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            signal.cancel()
            raise

        # next() can only fire while the handler runs, so a raised signal
        # means the handler yielded before it finished.
        if signal.done():
            log.debug("Handler %d of %r yielded early", index, ctx.command)
            (spawn or _watch)(task)
            continue

        task.result()
        signal.cancel()


async def _run_step(
    handler: MessageHandler,
    ctx: MessageContext,
    signal: asyncio.Future[None],
) -> None:
    # Runs inside the handler's own task, so the binding is private to it and
    # to any task it creates.
    current_signal.set(signal)
    await handler(ctx)


def _watch(task: asyncio.Task[None]) -> None:
    task.add_done_callback(_log_background_failure)


def _log_background_failure(task: asyncio.Task[None]) -> None:
    if not task.cancelled() and task.exception():
        log.error(
            "Handler failed after yielding to the next: %s", task.exception(),
            exc_info=task.exception(),
        )
