"""
sephirots.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn sephirots.api.main:app --reload --port 8000

or ``python -m sephirots.api.main``, which also reads ``api_port`` from
``config.yaml``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from sephirots import __version__  # noqa: E402
from sephirots.api.auth import router as auth_router  # noqa: E402
from sephirots.api.deps import get_engine  # noqa: E402
from sephirots.api.routes.badges import router as badges_router  # noqa: E402
from sephirots.api.routes.discussions import router as discussions_router  # noqa: E402
from sephirots.api.routes.donations import router as donations_router  # noqa: E402
from sephirots.api.routes.events import router as events_router  # noqa: E402
from sephirots.api.routes.governance import router as governance_router  # noqa: E402
from sephirots.api.routes.quests import router as quests_router  # noqa: E402
from sephirots.api.routes.reactions import router as reactions_router  # noqa: E402
from sephirots.api.routes.rewards import router as rewards_router  # noqa: E402
from sephirots.api.routes.settings import router as settings_router  # noqa: E402
from sephirots.api.routes.users import router as users_router  # noqa: E402
from sephirots.database.engine import init_db, run_db  # noqa: E402
from sephirots.services.errors import ServiceError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: create missing tables and seed catalogs."""
    engine = get_engine()
    await run_db(init_db, engine)
    logger.info("Sephirots API started, engine ready (%s)", engine.url.database)
    yield
    logger.info("Sephirots API shutting down")


app = FastAPI(
    title="The Sephirots API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(badges_router, prefix="/api")
app.include_router(quests_router, prefix="/api")
app.include_router(rewards_router, prefix="/api")
app.include_router(reactions_router, prefix="/api")
app.include_router(governance_router, prefix="/api")
app.include_router(discussions_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(donations_router, prefix="/api")
app.include_router(settings_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    from sephirots.config import load_config

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    cfg = load_config()
    logger.info("Starting %s API on port %d", cfg.community_name, cfg.api_port)
    uvicorn.run(app, host="0.0.0.0", port=cfg.api_port)


if __name__ == "__main__":
    main()
