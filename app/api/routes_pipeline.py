"""FastAPI routes for starting and observing pipeline runs."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from app.core.logging_config import get_logger
from app.models.schemas import ProgressEvent, RunStatusResponse, StartRunRequest, StyleConfig, VoiceConfig
from app.pipelines.run_manager import RunInProgressError, RunManager

router = APIRouter(prefix="/runs", tags=["runs"])
logger = get_logger(__name__)


def get_run_manager(request: Request) -> RunManager:
    """Run manager created at application startup."""
    return request.app.state.run_manager


@router.post("", response_model=RunStatusResponse, status_code=202)
def start_run(payload: StartRunRequest, request: Request) -> RunStatusResponse:
    """
    Start a pipeline run for the posted script.

    Returns 409 while another run is active.
    """
    manager = get_run_manager(request)
    settings = request.app.state.settings
    script = payload.to_script()

    voice_config = VoiceConfig(voice_id=payload.voice_id, speed=payload.speed)
    style_config = StyleConfig(
        style=payload.style or settings.image_style,
        width=settings.image_width,
        height=settings.image_height,
        aspect_ratio=settings.image_aspect_ratio,
    )

    try:
        run_id = manager.start(script, voice_config, style_config)
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"Run {run_id} started for '{script.title}' ({len(script.scenes)} scenes)")
    return manager.status()


@router.get("/current", response_model=RunStatusResponse)
def get_current_run(request: Request) -> RunStatusResponse:
    """State of the current (or most recent) run."""
    return get_run_manager(request).status()


@router.get("/current/events", response_model=list[ProgressEvent])
def get_current_events(request: Request, limit: Optional[int] = Query(default=None, ge=1)) -> list[ProgressEvent]:
    """Drain pending progress events of the current run."""
    return get_run_manager(request).events(limit)


@router.post("/current/cancel")
def cancel_current_run(request: Request) -> dict:
    """Request cancellation of the active run."""
    if not get_run_manager(request).cancel():
        raise HTTPException(status_code=404, detail="No active run")
    return {"status": "cancelling"}
