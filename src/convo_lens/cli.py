"""CLI entry point for convo-lens."""

import logging
import os

import click
import uvicorn


@click.group()
def main():
    """Browse Claude Code and Codex session logs as one conversation model."""
    pass


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option("--workspace", default=None, help="Workspace path backing the 'current' scope.")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Logging level.",
)
def serve(port: int, host: str, workspace: str | None, log_level: str):
    """Start the JSON API."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if workspace:
        # Read by the server module when it creates the index.
        os.environ["CONVO_LENS_WORKSPACE"] = os.path.abspath(workspace)

    click.echo(f"Starting convo-lens on http://{host}:{port}")
    uvicorn.run(
        "convo_lens.server:app",
        host=host,
        port=port,
        reload=False,
        log_level=log_level.lower(),
    )
