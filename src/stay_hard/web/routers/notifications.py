"""Notification history route."""

from fastapi import APIRouter, Depends, Query

from ...services.workflow import WorkflowEngine
from ..deps import get_engine

router = APIRouter(tags=["notifications"])


@router.get("/notifications")
async def recent_notifications(
    limit: int = Query(default=20, ge=1, le=50),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Alerts raised by the engine, newest first."""
    return [n.to_dict() for n in engine.history.recent(limit)]
