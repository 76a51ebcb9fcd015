from __future__ import annotations

from fastapi import Request

from monsterden.engine import Engine, get_engine


def get_app_engine(request: Request) -> Engine:
    """Return the engine attached to the app, or the process-wide one.

    ``create_app`` stores an engine on ``app.state`` so tests can hand each
    application its own isolated stores.
    """
    engine = getattr(request.app.state, "engine", None)
    return engine if engine is not None else get_engine()
