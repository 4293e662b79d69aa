"""FastAPI application for the stay-hard JSON API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from ..db.engine import init_db
from ..exceptions import SetupError
from ..services.workflow import WorkflowEngine
from .routers import notifications, wallet, workflow


def create_app(engine: WorkflowEngine | None = None, start_engine: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Engine to serve (a default one is built if omitted)
        start_engine: Start the workflow on startup if setup is complete
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler - owns the workflow engine."""
        engine = app.state.engine
        await init_db(engine.db_path)

        if start_engine and await engine.init():
            try:
                await engine.start()
                engine.run_in_background()
            except SetupError as e:
                logger.warning(f"Workflow not started: {e}")
        yield
        await engine.shutdown()

    app = FastAPI(
        title="stay-hard",
        description="Daily gym accountability workflow",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine or WorkflowEngine()

    app.include_router(workflow.router)
    app.include_router(wallet.router)
    app.include_router(notifications.router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "version": "0.1.0"}

    return app

