"""Tests for the bounded background run pool."""
import asyncio
import logging

import pytest

from mtrreport.runner import PoolFullError, RunPool


class TestRunPool:
    def test_limits_must_be_positive(self):
        with pytest.raises(ValueError):
            RunPool(max_concurrent=0)

    @pytest.mark.asyncio
    async def test_runs_jobs(self):
        pool = RunPool(max_concurrent=2, max_pending=4, timeout=5)
        done = []

        async def job(n):
            await asyncio.sleep(0)
            done.append(n)

        for n in range(3):
            pool.submit(lambda n=n: job(n))
        await pool.join()
        assert sorted(done) == [0, 1, 2]
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_concurrency_is_capped(self):
        pool = RunPool(max_concurrent=2, max_pending=10, timeout=5)
        running = 0
        peak = 0

        async def job():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        for _ in range(6):
            pool.submit(job)
        await pool.join()
        assert peak == 2

    @pytest.mark.asyncio
    async def test_admission_control(self):
        pool = RunPool(max_concurrent=1, max_pending=2, timeout=5)
        gate = asyncio.Event()

        async def job():
            await gate.wait()

        pool.submit(job)
        pool.submit(job)
        assert pool.active == 2
        with pytest.raises(PoolFullError):
            pool.submit(job)

        gate.set()
        await pool.join()
        pool.submit(job)
        await pool.join()

    @pytest.mark.asyncio
    async def test_timeout_is_logged(self, caplog):
        pool = RunPool(max_concurrent=1, max_pending=1, timeout=0.05)

        async def job():
            await asyncio.sleep(10)

        with caplog.at_level(logging.ERROR, logger="mtrreport.runner"):
            run_id = pool.submit(job, label="mtr:example.com")
            await pool.join()
        assert f"mtr:example.com {run_id} timed out" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        pool = RunPool(timeout=5)

        async def job():
            raise RuntimeError("kaboom")

        with caplog.at_level(logging.ERROR, logger="mtrreport.runner"):
            pool.submit(job)
            await pool.join()
        assert "kaboom" in caplog.text

    @pytest.mark.asyncio
    async def test_shutdown_cancels(self):
        pool = RunPool(max_concurrent=1, max_pending=5, timeout=60)
        cancelled = []

        async def job():
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        pool.submit(job)
        pool.submit(job)
        await asyncio.sleep(0.05)
        await pool.shutdown()
        assert pool.active == 0
        assert cancelled == [True]
