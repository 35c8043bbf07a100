"""Cron-driven scheduled jobs.

Each :class:`ScheduledJob` owns one background loop that sleeps until the next
fire time computed by *croniter* and then runs the job handler with the
:class:`~relaybot.context.JobContext` bound at load time.  Every tick runs as
its own task: a slow handler never delays the schedule, and a failing one is
logged without stopping later ticks.

Lifecycle::

    runner = ScheduledJobRunner(registry.jobs.values())
    await runner.start_all()
    ...
    await runner.stop_all()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, tzinfo
from typing import Any

from croniter import croniter

from relaybot.context import JobContext
from relaybot.definitions import JobDefinition

log = logging.getLogger(__name__)


class ScheduledJob:
    """A job definition bound to its context and a cron loop.

    Args:
        definition: Name, cron expression and handler.
        context: Context passed to every tick.
        tz: Timezone the cron expression is evaluated in.
    """

    # Ticks later than this (seconds) are skipped instead of fired in a burst,
    # e.g. after the host was suspended.
    _MISFIRE_GRACE: float = 60.0

    def __init__(
        self,
        definition: JobDefinition,
        context: JobContext[Any],
        tz: tzinfo = UTC,
    ) -> None:
        self.definition = definition
        self.context = context
        self._tz = tz
        self._task: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[None]] = set()
        self._tick_count: int = 0
        self._sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def schedule(self) -> str:
        return self.definition.schedule

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def next_fire_time(self, after: datetime | None = None) -> datetime:
        """Return the first fire time strictly after *after* (default: now)."""
        base = after or datetime.now(self._tz)
        return croniter(self.schedule, base).get_next(datetime)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the cron loop.  A second call while running is a no-op."""
        if self.is_running:
            log.warning("Job %r start() called but it is already running.", self.name)
            return
        self._task = asyncio.create_task(self._loop(), name=f"job-{self.name}")
        log.info(
            "Job %r started (schedule=%r, next=%s).",
            self.name, self.schedule, self.next_fire_time().isoformat(),
        )

    async def stop(self) -> None:
        """Stop the cron loop.  Ticks already running are left to finish."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        log.info("Job %r stopped after %d tick(s).", self.name, self._tick_count)

    async def run_once(self) -> None:
        """Run the handler once with the bound context.  Errors propagate."""
        self._tick_count += 1
        await self.definition.handler(self.context)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        schedule = croniter(self.schedule, datetime.now(self._tz))
        while True:
            fire_at: datetime = schedule.get_next(datetime)
            delay = (fire_at - datetime.now(self._tz)).total_seconds()
            if delay < -self._MISFIRE_GRACE:
                log.warning(
                    "Job %r missed its %s tick, resynchronising.", self.name, fire_at.isoformat(),
                )
                schedule = croniter(self.schedule, datetime.now(self._tz))
                continue
            if delay > 0:
                await self._sleep(delay)
            self._spawn_tick()

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self.run_once(), name=f"job-{self.name}-tick")
        self._ticks.add(task)
        task.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Task[None]) -> None:
        self._ticks.discard(task)
        if not task.cancelled() and task.exception():
            log.error(
                "Job %r tick failed: %s", self.name, task.exception(),
                exc_info=task.exception(),
            )


class ScheduledJobRunner:
    """Starts and stops a set of scheduled jobs together."""

    def __init__(self, jobs: Iterable[ScheduledJob]) -> None:
        self.jobs: list[ScheduledJob] = list(jobs)

    @property
    def running(self) -> list[str]:
        return [job.name for job in self.jobs if job.is_running]

    async def start_all(self) -> None:
        for job in self.jobs:
            await job.start()
        log.info("Started %d scheduled job(s).", len(self.jobs))

    async def stop_all(self) -> None:
        for job in self.jobs:
            await job.stop()
