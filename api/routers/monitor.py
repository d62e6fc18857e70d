from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from core.exceptions import PipelineConfigError

router = APIRouter(prefix="/api/monitor", tags=["monitor"])


def _scheduler(request: Request):
    return getattr(request.app.state, "monitor", None)


@router.post("/run")
async def trigger_monitor(request: Request):
    scheduler = _scheduler(request)
    if scheduler is None:
        raise HTTPException(503, "Monitor not initialized")

    try:
        return await scheduler.run_now()
    except PipelineConfigError as exc:
        raise HTTPException(400, str(exc)) from exc


@router.get("/status")
async def monitor_status(request: Request):
    scheduler = _scheduler(request)
    if scheduler is None:
        return {"running": False, "jobs": []}
    status = scheduler.get_status()
    status["last_result"] = scheduler.last_result
    return status
