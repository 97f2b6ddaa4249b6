"""
Tests for the HTTP transport.

`trace` is patched so no mtr process is started.
"""
import asyncio
import logging
import time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from mtrreport.server import create_app, run_trace_job
from mtrreport.tracer import MtrPermissionError, TraceResult


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def fake_trace():
    result = TraceResult(target="example.com", count=5, report=False, output="REPORT\n")
    with patch("mtrreport.server.trace", new=AsyncMock(return_value=result)) as m:
        yield m


@pytest.fixture
def api_client(settings, fake_trace):
    with TestClient(create_app(settings)) as client:
        yield client


class TestHealthEndpoint:
    def test_health_check(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["active_runs"] == 0
        assert "version" in data


class TestMtrEndpoint:
    def test_accepts_and_runs_in_background(self, api_client, fake_trace, settings):
        response = api_client.get("/mtr", params={"hostname": "example.com", "count": "5", "report": "true"})
        assert response.status_code == status.HTTP_202_ACCEPTED
        data = response.json()
        assert data["status"] == "accepted"
        assert data["message"] == "MTR trace to example.com started (count=5, report=true)"
        assert data["run_id"]

        assert _wait_for(lambda: fake_trace.await_count == 1)
        args, kwargs = fake_trace.await_args
        assert args[:3] == ("example.com", 5, True)
        assert kwargs["color"] is False

    def test_default_count(self, api_client):
        response = api_client.get("/mtr", params={"hostname": "10.0.0.1"})
        assert response.status_code == status.HTTP_202_ACCEPTED
        assert "(count=20, report=false)" in response.json()["message"]

    @pytest.mark.parametrize(
        "params, message",
        [
            ({}, "hostname parameter is required"),
            ({"hostname": "example.com;reboot"}, "invalid hostname format"),
            ({"hostname": "example.com", "count": "0"}, "invalid count parameter"),
            ({"hostname": "example.com", "count": "ten"}, "invalid count parameter"),
            ({"hostname": "example.com", "count": "101"}, "count cannot exceed 100"),
            ({"hostname": "example.com", "report": "perhaps"}, "invalid report parameter"),
        ],
    )
    def test_validation_errors(self, api_client, fake_trace, params, message):
        response = api_client.get("/mtr", params=params)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"status": "error", "message": message}
        fake_trace.assert_not_awaited()

    def test_pool_full(self, settings):
        async def never_finishes(*args, **kwargs):
            await asyncio.sleep(3600)

        tight = settings.model_copy(update={"max_concurrent_runs": 1, "max_pending_runs": 1})
        with patch("mtrreport.server.trace", new=never_finishes):
            with TestClient(create_app(tight)) as client:
                first = client.get("/mtr", params={"hostname": "example.com"})
                second = client.get("/mtr", params={"hostname": "example.com"})
                assert client.get("/health").json()["active_runs"] == 1

        assert first.status_code == status.HTTP_202_ACCEPTED
        assert second.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert second.json()["status"] == "error"


class TestTraceJob:
    @pytest.mark.asyncio
    async def test_logs_report(self, settings, fake_trace, caplog):
        with caplog.at_level(logging.INFO, logger="mtrreport.server"):
            await run_trace_job("example.com", 5, False, settings)
        assert "Starting MTR trace hostname=example.com count=5 report=False" in caplog.text
        assert "MTR trace to example.com completed:\nREPORT" in caplog.text

    @pytest.mark.asyncio
    async def test_logs_failure(self, settings, caplog):
        failing = AsyncMock(side_effect=MtrPermissionError("permission denied - try running with sudo"))
        with patch("mtrreport.server.trace", new=failing), caplog.at_level(logging.ERROR, logger="mtrreport.server"):
            await run_trace_job("example.com", 5, False, settings)
        assert "MTR trace to example.com failed: permission denied" in caplog.text
