"""Uvicorn entrypoint for the edge service."""

from __future__ import annotations

import uvicorn

from .app import create_app

app = create_app()


def serve() -> None:
    settings = app.state.edge_state.settings
    uvicorn.run(app, host=settings.bind_host, port=settings.port, log_config=None)
