"""Command line entry point: ``codelingo``.

Options are exported as ``CODELINGO_*`` environment variables before the
server starts so the app (and any reload worker) sees the same settings.
"""

import logging
import os

import typer
import uvicorn

from codelingo.config import reload_settings

app = typer.Typer(help="Run the codelingo collaborative editor server.")

log = logging.getLogger(__name__)


def _export(name: str, value: object | None) -> None:
    if value is not None:
        os.environ[f"CODELINGO_{name}"] = str(value)


@app.command()
def main(
    host: str | None = typer.Option(None, help="Interface to bind."),
    port: int | None = typer.Option(None, help="Port to listen on."),
    database_url: str | None = typer.Option(
        None, help="Async SQLAlchemy URL, e.g. sqlite+aiosqlite:///./codelingo.db"
    ),
    redis_url: str | None = typer.Option(
        None, help="Redis URL; omit to run single-process in-memory mode."
    ),
    log_level: str | None = typer.Option(None, help="DEBUG, INFO, WARNING, ..."),
    reload: bool = typer.Option(False, help="Restart on code changes (dev only)."),
) -> None:
    """Start the HTTP and Socket.IO server."""
    _export("HOST", host)
    _export("PORT", port)
    _export("DATABASE_URL", database_url)
    _export("REDIS_URL", redis_url)
    _export("LOG_LEVEL", log_level)

    settings = reload_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.log_config()

    typer.echo(f"codelingo listening on http://{settings.host}:{settings.port}")
    uvicorn.run(
        "codelingo.app:socket_app",
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
