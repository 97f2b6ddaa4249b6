"""
HTTP transport: accepts trace requests and runs them in the background.

``GET /mtr`` validates its query, answers immediately with an ``accepted``
acknowledgement, and hands the run to the bounded pool. The finished report
(or the failure) goes to the server log.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .config import Settings, __version__, get_settings
from .runner import PoolFullError, RunPool
from .tracer import ProbeError, trace
from .util import ValidationError, parse_bool, validate_count, validate_target

logger = logging.getLogger(__name__)


def _reply(code: int, status_text: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=code, content={"status": status_text, "message": message, **extra})


async def run_trace_job(target: str, count: int, report: bool, settings: Settings) -> None:
    logger.info("Starting MTR trace hostname=%s count=%d report=%s", target, count, report)
    try:
        result = await trace(target, count, report, settings, color=False)
    except ProbeError as e:
        logger.error("MTR trace to %s failed: %s", target, e)
        return
    logger.info("MTR trace to %s completed:\n%s", target, result.output)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.pool = RunPool(
            max_concurrent=settings.max_concurrent_runs,
            max_pending=settings.max_pending_runs,
            timeout=settings.run_timeout,
        )
        logger.info(
            "run pool ready (concurrent=%d, pending=%d, timeout=%gs)",
            settings.max_concurrent_runs,
            settings.max_pending_runs,
            settings.run_timeout,
        )
        yield
        await app.state.pool.shutdown()

    app = FastAPI(title="mtr-report", version=__version__, lifespan=lifespan)
    app.state.settings = settings

    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "healthy",
            "version": __version__,
            "active_runs": request.app.state.pool.active,
        }

    @app.get("/mtr")
    async def start_mtr(
        request: Request,
        hostname: Optional[str] = None,
        count: Optional[str] = None,
        report: Optional[str] = None,
    ):
        try:
            target = validate_target(hostname)
            n = validate_count(count, default=settings.default_count, maximum=settings.max_count)
            want_report = parse_bool(report, "report")
        except ValidationError as e:
            return _reply(status.HTTP_400_BAD_REQUEST, "error", str(e))

        pool: RunPool = request.app.state.pool
        try:
            run_id = pool.submit(
                lambda: run_trace_job(target, n, want_report, settings),
                label=f"mtr:{target}",
            )
        except PoolFullError as e:
            logger.warning("rejecting trace to %s: %s", target, e)
            return _reply(status.HTTP_503_SERVICE_UNAVAILABLE, "error", str(e))

        return _reply(
            status.HTTP_202_ACCEPTED,
            "accepted",
            f"MTR trace to {target} started (count={n}, report={str(want_report).lower()})",
            run_id=run_id,
        )

    return app
