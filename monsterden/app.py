"""Application entry-point.

:func:`create_app` builds the FastAPI instance used by the local development
server (``uvicorn``), the AWS Lambda handler and the tests. Each app carries
its own :class:`~monsterden.engine.Engine` on ``app.state`` so tests can pass
an isolated one in.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from monsterden import config
from monsterden.engine import Engine, get_engine
from monsterden.logging_setup import setup_logging
from monsterden.routes.monsters import router as monsters_router
from monsterden.routes.quests import router as quests_router
from monsterden.routes.tasks import router as tasks_router
from monsterden.routes.wallet import router as wallet_router

logger = logging.getLogger(__name__)

DEFAULT_CORS = [
    "http://localhost:3000",
    "http://localhost:5173",
]


def _validate_cors_origins(origins: list[str]) -> list[str]:
    """Ensure each origin uses http(s) and has a concrete host."""
    validated: list[str] = []
    for origin in origins:
        parsed = urlparse(origin)
        if parsed.scheme in {"http", "https"} and parsed.netloc and "*" not in parsed.netloc:
            validated.append(origin)
        else:
            raise ValueError(f"Invalid CORS origin: {origin}")
    return validated


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``engine`` defaults to the process-wide one from
    :func:`monsterden.engine.get_engine`.
    """

    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # let background event deliveries finish before the process exits
        app.state.engine.drain(timeout=5)
        for handler in logging.getLogger().handlers:
            handler.flush()

    app = FastAPI(
        title="Monsterden Progression API",
        version="1.0",
        docs_url="/docs",
        lifespan=lifespan,
    )
    app.state.engine = engine if engine is not None else get_engine()

    storage_uri = "memory://"
    if config.app_env in {"production", "aws"}:
        redis_url = os.getenv("REDIS_URL")
        if redis_url:
            storage_uri = redis_url

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{config.rate_limit_per_minute}/minute"],
        storage_uri=storage_uri,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    cors_origins = _validate_cors_origins(
        list(dict.fromkeys((config.cors_origins or []) + DEFAULT_CORS))
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )
    # after CORS so preflight requests are not rate limited
    app.add_middleware(SlowAPIMiddleware)

    app.include_router(wallet_router)
    app.include_router(quests_router)
    app.include_router(monsters_router)
    app.include_router(tasks_router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Return 422 for body errors and 400 for query errors."""
        status = 422 if exc.body is not None else 400
        return JSONResponse(status_code=status, content={"detail": exc.errors()})

    @app.get("/health")
    async def health():
        """Return a small payload used by tests and uptime monitors."""

        return {"status": "ok", "env": config.app_env, "storage": config.storage_backend}

    return app


# optional local run:  python -m monsterden.app
if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
