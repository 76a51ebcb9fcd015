"""
AWS Lambda entry-point (Python 3.12 runtime or container).
Handler: monsterden.lambda_api.handler.lambda_handler
"""

import asyncio

from mangum import Mangum

from monsterden.app import create_app


def _create_handler() -> Mangum:
    """Create the Mangum handler, setting an event loop first if none exists."""

    try:  # pragma: no cover - the exception path is platform specific
        asyncio.get_running_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())

    return Mangum(create_app(), lifespan="off")


lambda_handler = _create_handler()
