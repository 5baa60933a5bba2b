"""Tests for the periodic collection trigger."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from hotkeys.core.exceptions import ValidationError
from hotkeys.domain.models import CollectionSummary, utc_now
from hotkeys.services.scheduler_svc import SchedulerService


@pytest.fixture
def collector():
    mock = Mock()
    mock.top_n = 10
    mock.run_once = AsyncMock(return_value=CollectionSummary(started_at=utc_now()))
    mock.cleanup_old_data = AsyncMock(return_value=3)
    return mock


@pytest.mark.parametrize("minutes", [0, 1441, -5])
def test_interval_out_of_range_rejected(collector, minutes):
    with pytest.raises(ValidationError):
        SchedulerService(collector, interval_minutes=minutes)


def test_interval_bounds_accepted(collector):
    assert SchedulerService(collector, interval_minutes=1).interval_minutes == 1
    assert SchedulerService(collector, interval_minutes=1440).interval_minutes == 1440


@pytest.mark.asyncio
async def test_run_once_records_last_run(collector):
    scheduler = SchedulerService(collector)

    summary = await scheduler.run_once()

    assert isinstance(summary, CollectionSummary)
    assert scheduler.last_run_at is not None
    collector.run_once.assert_awaited_once()


@pytest.mark.asyncio
async def test_scheduled_tick_skipped_while_run_in_flight(collector):
    release = asyncio.Event()

    async def slow_run():
        await release.wait()
        return CollectionSummary(started_at=utc_now())

    collector.run_once = AsyncMock(side_effect=slow_run)
    scheduler = SchedulerService(collector)

    in_flight = asyncio.create_task(scheduler.execute_collection())
    await asyncio.sleep(0)
    skipped = await scheduler.execute_collection()
    release.set()
    finished = await in_flight

    assert skipped is None
    assert finished is not None
    assert collector.run_once.await_count == 1


@pytest.mark.asyncio
async def test_execute_cleanup_uses_retention_days(collector):
    scheduler = SchedulerService(collector, retention_days=5)

    assert await scheduler.execute_cleanup() == 3
    collector.cleanup_old_data.assert_awaited_once_with(5)
    assert scheduler.last_cleanup_at is not None


@pytest.mark.asyncio
async def test_start_runs_immediately_and_stop_cancels(collector):
    scheduler = SchedulerService(collector, interval_minutes=30)

    scheduler.start()
    for _ in range(5):
        await asyncio.sleep(0)

    assert scheduler.is_running
    collector.run_once.assert_awaited_once()

    await scheduler.stop()
    assert not scheduler.is_running


@pytest.mark.asyncio
async def test_failed_scheduled_run_keeps_loop_alive(collector):
    collector.run_once = AsyncMock(side_effect=RuntimeError("boom"))
    scheduler = SchedulerService(collector)

    scheduler.start()
    for _ in range(5):
        await asyncio.sleep(0)

    assert scheduler.is_running
    await scheduler.stop()


@pytest.mark.asyncio
async def test_update_interval_restarts_collection_loop(collector):
    scheduler = SchedulerService(collector, interval_minutes=30)
    scheduler.start()
    await asyncio.sleep(0)
    original_task = scheduler._tasks["collection"]

    scheduler.update_interval(15)
    await asyncio.sleep(0)

    assert scheduler.interval_minutes == 15
    assert scheduler._tasks["collection"] is not original_task
    await scheduler.stop()


def test_update_interval_validates(collector):
    scheduler = SchedulerService(collector)

    with pytest.raises(ValidationError):
        scheduler.update_interval(5000)
    assert scheduler.interval_minutes == 30


def test_status_reports_config(collector):
    status = SchedulerService(collector, interval_minutes=45, retention_days=3).get_status()

    assert status["is_running"] is False
    assert status["config"] == {
        "collection_interval_minutes": 45,
        "retention_days": 3,
        "top_items_limit": 10,
    }
