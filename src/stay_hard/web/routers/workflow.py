"""Workflow lifecycle and check-in routes."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...exceptions import CheckInError, SetupError
from ...models.geo import GeoPoint
from ...services.workflow import WorkflowEngine
from ..deps import get_engine

router = APIRouter(prefix="/workflow", tags=["workflow"])


class CheckInRequest(BaseModel):
    """Optional coordinates from the client's own location lookup."""

    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)


@router.get("/status")
async def workflow_status(engine: WorkflowEngine = Depends(get_engine)):
    """Current run stage, day outcome, streak and wallet balance."""
    status = await engine.status()
    return status.to_dict()


@router.post("/start")
async def start_workflow(engine: WorkflowEngine = Depends(get_engine)):
    """Start the workflow, or restart it if already running."""
    try:
        await engine.start()
    except SetupError as e:
        raise HTTPException(status_code=409, detail=str(e))
    engine.run_in_background()
    status = await engine.status()
    return status.to_dict()


@router.post("/stop")
async def stop_workflow(engine: WorkflowEngine = Depends(get_engine)):
    """Stop the workflow and cancel any active run."""
    engine.stop()
    status = await engine.status()
    return status.to_dict()


@router.post("/check-in")
async def check_in(
    body: CheckInRequest | None = None,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Manual check-in against the lenient radius."""
    position = None
    if body is not None and body.lat is not None and body.lng is not None:
        position = GeoPoint(body.lat, body.lng)

    try:
        result = await engine.manual_check_in(position)
    except SetupError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CheckInError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "message": str(e),
                "distance_meters": (
                    round(e.distance_meters, 1) if e.distance_meters is not None else None
                ),
                "cause": e.cause.value if e.cause else None,
            },
        )
    return result.to_dict()
