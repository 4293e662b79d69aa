"""Web server command."""

import click

from .base import ensure_initialized


@click.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
@click.option("--port", "-p", default=8000, type=int, help="Port to bind to (default: 8000)")
@click.option("--no-engine", is_flag=True, help="Serve the API without starting the workflow")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, no_engine: bool):
    """Start the JSON API server.

    The workflow engine runs inside the server process, so reminders and
    penalties fire while it is up. A UI can poll /workflow/status and post
    check-ins to /workflow/check-in.

    Examples:

        # Start on default port (8000)
        stay-hard serve

        # Expose to network (all interfaces)
        stay-hard serve --host 0.0.0.0
    """
    ensure_initialized(ctx)

    import uvicorn

    from ..web import create_app

    click.echo()
    click.echo(click.style("Starting stay-hard API server...", fg="green"))
    click.echo()
    click.echo(f"  Local:   http://{host}:{port}")
    click.echo(f"  Docs:    http://{host}:{port}/docs")
    click.echo()
    click.echo("Press Ctrl+C to stop the server.")
    click.echo()

    app = create_app(start_engine=not no_engine)
    uvicorn.run(app, host=host, port=port)
