"""Local store daemon: owns a store data directory and serves its status.

Launched by ``LocalStoreProcessManager`` as::

    python -m logsieve.store.daemon --port 27018 --data-dir /path/to/data

Binding the port is the readiness signal the manager waits for.
"""

from __future__ import annotations

import os
from pathlib import Path

import typer
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..config import StoreConnectionInfo
from .client import StoreClient


def create_app(data_dir: Path) -> Starlette:
    """Build the Starlette application serving ``data_dir``."""
    client = StoreClient(StoreConnectionInfo(data_dir=str(data_dir)))

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "pid": os.getpid(),
                "data_dir": str(client.data_dir),
            }
        )

    async def databases(request: Request) -> JSONResponse:
        names = client.list_database_names()
        return JSONResponse({"databases": names, "count": len(names)})

    return Starlette(
        routes=[
            Route("/health", health),
            Route("/databases", databases),
        ]
    )


def main(
    data_dir: Path = typer.Option(..., "--data-dir", help="Store data directory"),
    port: int = typer.Option(27018, "--port", help="Port to bind"),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
) -> None:
    import uvicorn

    data_dir.mkdir(parents=True, exist_ok=True)
    uvicorn.run(create_app(data_dir), host=host, port=port, log_level="warning")


if __name__ == "__main__":
    typer.run(main)
