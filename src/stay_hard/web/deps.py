"""Request dependencies."""

from fastapi import Request

from ..services.workflow import WorkflowEngine


def get_engine(request: Request) -> WorkflowEngine:
    """Get the workflow engine from app state."""
    return request.app.state.engine
