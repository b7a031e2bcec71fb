"""
FastAPI status application.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, List, Optional
import asyncio
import logging
import time

from fastapi import Depends, FastAPI, HTTPException, Request, status

from . import __version__
from .exceptions import VolumeSchedulerError
from .schemas import HealthModel, SchedulePreviewModel, TickReport
from .services import PollingScheduler, ReconciliationService

request_logger = logging.getLogger("volume_scheduler.requests")
logger = logging.getLogger(__name__)


def create_app(
    service: ReconciliationService,
    *,
    interval: float = 60.0,
    run_poller: bool = True,
) -> FastAPI:
    """
    Build the status API around a reconciliation service. With
    ``run_poller`` the polling loop lives for as long as the application.
    """
    poller = PollingScheduler(service, interval=interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task: Optional[asyncio.Task] = None
        if run_poller:
            task = asyncio.create_task(poller.run())
        app.state.poller_task = task
        yield
        if task is not None:
            poller.request_stop()
            # Let an in-flight tick finish; the poller closes the service itself.
            await task
        else:
            await asyncio.to_thread(service.close)

    app = FastAPI(title="Volume Scheduler", version=__version__, lifespan=lifespan)
    app.state.service = service
    app.state.poller = poller

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time
        request_logger.info(
            "http path=%s status=%s duration=%.3fs",
            request.url.path,
            response.status_code,
            duration,
        )
        return response

    def get_service() -> ReconciliationService:
        svc: ReconciliationService = app.state.service
        return svc

    def get_poller() -> PollingScheduler:
        return app.state.poller

    @app.get("/api/health", response_model=HealthModel)
    async def api_health(
        poller: PollingScheduler = Depends(get_poller),
        svc: ReconciliationService = Depends(get_service),
    ) -> HealthModel:
        return HealthModel(
            state=poller.state.value,
            interval_seconds=poller.interval,
            last_tick_at=poller.last_tick_at,
            tracked_zones=len(svc.zone_state),
        )

    @app.get("/api/zones/state", response_model=Dict[str, int])
    async def api_zone_state(
        svc: ReconciliationService = Depends(get_service),
    ) -> Dict[str, int]:
        return svc.zone_state.snapshot()

    @app.get("/api/ticks/last", response_model=TickReport)
    async def api_last_tick(
        svc: ReconciliationService = Depends(get_service),
    ) -> TickReport:
        if svc.last_report is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No tick has run yet")
        return svc.last_report

    @app.post("/api/ticks", response_model=TickReport)
    async def api_run_tick(
        poller: PollingScheduler = Depends(get_poller),
    ) -> TickReport:
        report = await poller.trigger_tick()
        if report is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A tick is already running")
        return report

    @app.get("/api/schedules/preview", response_model=List[SchedulePreviewModel])
    async def api_preview(
        svc: ReconciliationService = Depends(get_service),
    ) -> List[SchedulePreviewModel]:
        try:
            return await asyncio.to_thread(svc.preview)
        except VolumeSchedulerError as exc:
            logger.error("preview.failed error=%s", exc)
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))

    return app
