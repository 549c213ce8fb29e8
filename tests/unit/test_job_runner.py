"""Unit tests for the background job runner."""

import asyncio

import pytest
import structlog

from services.job_runner import BackgroundJobRunner


@pytest.mark.unit
class TestBackgroundJobRunner:
    @pytest.mark.asyncio
    async def test_runs_jobs_with_arguments(self):
        runner = BackgroundJobRunner()
        results = []

        async def job(value, other):
            results.append((value, other))

        runner.submit("job-1", job, 1, "a")
        runner.submit("job-2", job, 2, "b")
        await runner.drain()

        assert sorted(results) == [(1, "a"), (2, "b")]
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_crashing_job_does_not_escape(self):
        runner = BackgroundJobRunner()

        async def job():
            raise RuntimeError("boom")

        task = runner.submit("job-1", job)
        await runner.drain()

        assert task.done()
        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_drain_waits_for_jobs_scheduled_by_jobs(self):
        runner = BackgroundJobRunner()
        results = []

        async def child():
            results.append("child")

        async def parent():
            runner.submit("child", child)
            results.append("parent")

        runner.submit("parent", parent)
        await runner.drain()

        assert results == ["parent", "child"]

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_jobs(self):
        runner = BackgroundJobRunner()
        never = asyncio.Event()

        task = runner.submit("job-1", never.wait)
        await asyncio.sleep(0)
        assert runner.pending == 1

        await runner.shutdown()

        assert task.cancelled()
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_job_id_is_bound_for_logging(self):
        runner = BackgroundJobRunner()
        seen = {}

        async def job():
            seen.update(structlog.contextvars.get_contextvars())

        runner.submit("voiceover-42", job)
        await runner.drain()

        assert seen["job_id"] == "voiceover-42"
        assert "job_id" not in structlog.contextvars.get_contextvars()
