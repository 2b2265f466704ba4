"""CLI module for running and probing the AgileFlow backend."""

import typer

from agileflow.cli.readiness import app as readiness_app

app = typer.Typer(
    name="agileflow",
    help="AgileFlow API - server and readiness tooling",
    no_args_is_help=True,
)

app.add_typer(readiness_app, name="readiness", help="Probe a running backend")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(3001, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    uvicorn.run(
        "agileflow.main:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def version() -> None:
    """Show the application version."""
    from agileflow.config.settings import get_app_version

    typer.echo(f"agileflow version {get_app_version()}")


if __name__ == "__main__":
    app()
