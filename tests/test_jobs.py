"""Tests for cron-driven scheduled jobs."""

import asyncio
import logging
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from relaybot.channels.directory import ChannelDirectory
from relaybot.context import JobContext
from relaybot.definitions import JobDefinition
from relaybot.jobs import ScheduledJob, ScheduledJobRunner


async def _instant_sleep(delay):
    await asyncio.sleep(0)


def make_job(client, handler, schedule="* * * * *", name="job", tz=UTC):
    context = JobContext(client, ChannelDirectory(), name)
    job = ScheduledJob(JobDefinition(name, schedule, handler), context, tz=tz)
    job._sleep = _instant_sleep
    return job


async def noop(ctx):
    return None


def test_next_fire_time_follows_cron(client):
    job = make_job(client, noop, schedule="0 9 * * *")
    after = datetime(2026, 1, 1, 8, 0, tzinfo=UTC)
    assert job.next_fire_time(after) == datetime(2026, 1, 1, 9, 0, tzinfo=UTC)


def test_next_fire_time_respects_timezone(client):
    berlin = ZoneInfo("Europe/Berlin")
    job = make_job(client, noop, schedule="0 9 * * *", tz=berlin)
    after = datetime(2026, 1, 1, 8, 30, tzinfo=berlin)
    fire = job.next_fire_time(after)
    assert (fire.hour, fire.day) == (9, 1)


@pytest.mark.asyncio
async def test_run_once_passes_bound_context(client):
    seen = []

    async def handler(ctx):
        seen.append(ctx)

    job = make_job(client, handler)
    await job.run_once()

    assert seen == [job.context]
    assert job.tick_count == 1


@pytest.mark.asyncio
async def test_started_job_ticks_until_stopped(client):
    fired = asyncio.Event()

    async def handler(ctx):
        fired.set()

    job = make_job(client, handler)
    await job.start()
    assert job.is_running

    await asyncio.wait_for(fired.wait(), timeout=1)
    await job.stop()
    assert not job.is_running


@pytest.mark.asyncio
async def test_failing_tick_is_logged_and_schedule_continues(client, caplog):
    calls = []

    async def handler(ctx):
        calls.append(1)
        raise RuntimeError("tick exploded")

    job = make_job(client, handler)
    with caplog.at_level(logging.ERROR):
        await job.start()
        for _ in range(50):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
        await job.stop()
        await asyncio.sleep(0)

    assert len(calls) >= 2
    assert "tick exploded" in caplog.text


@pytest.mark.asyncio
async def test_start_twice_keeps_one_loop(client, caplog):
    job = make_job(client, noop, schedule="0 0 1 1 *")
    job._sleep = asyncio.sleep  # far-future schedule; never wakes during the test
    with caplog.at_level(logging.WARNING):
        await job.start()
        task = job._task
        await job.start()

    assert job._task is task
    assert "already running" in caplog.text
    await job.stop()


@pytest.mark.asyncio
async def test_runner_starts_and_stops_all(client):
    jobs = [make_job(client, noop, schedule="0 0 1 1 *", name=n) for n in ("a", "b")]
    for job in jobs:
        job._sleep = asyncio.sleep
    runner = ScheduledJobRunner(jobs)

    await runner.start_all()
    assert runner.running == ["a", "b"]

    await runner.stop_all()
    assert runner.running == []
