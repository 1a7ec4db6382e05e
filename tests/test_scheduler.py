"""Tests for the periodic job scheduler."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from packsync.config import SyncConfig
from packsync.services.scheduler import PROBE_JOB_ID, SYNC_JOB_ID, SchedulerService


@pytest.fixture
def sync_service():
    service = MagicMock()
    service.run_scheduled_sync = AsyncMock()
    return service


@pytest.fixture
def probe():
    connectivity_probe = MagicMock()
    connectivity_probe.run_scheduled_probe = AsyncMock()
    return connectivity_probe


class TestSchedulerService:
    @pytest.mark.asyncio
    async def test_start_schedules_replay_and_probe(self, sync_service, probe):
        scheduler = SchedulerService(SyncConfig(), sync_service, probe)

        await scheduler.start()
        try:
            assert scheduler.running
            assert scheduler.get_next_run_time(SYNC_JOB_ID) is not None
            assert scheduler.get_next_run_time(PROBE_JOB_ID) is not None
        finally:
            await scheduler.stop()

        assert not scheduler.running
        assert scheduler.get_next_run_time(SYNC_JOB_ID) is None

    @pytest.mark.asyncio
    async def test_probe_job_skipped_when_disabled(self, sync_service, probe):
        scheduler = SchedulerService(SyncConfig(probe_enabled=False), sync_service, probe)

        await scheduler.start()
        try:
            assert scheduler.get_next_run_time(SYNC_JOB_ID) is not None
            assert scheduler.get_next_run_time(PROBE_JOB_ID) is None
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_second_start_is_ignored(self, sync_service):
        scheduler = SchedulerService(SyncConfig(), sync_service)

        await scheduler.start()
        try:
            first = scheduler.get_next_run_time(SYNC_JOB_ID)
            await scheduler.start()
            assert scheduler.get_next_run_time(SYNC_JOB_ID) == first
        finally:
            await scheduler.stop()

    def test_next_run_time_before_start(self, sync_service):
        assert SchedulerService(SyncConfig(), sync_service).get_next_run_time(SYNC_JOB_ID) is None
