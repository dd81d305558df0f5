"""
cairn.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn cairn.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

load_dotenv()

from cairn import __version__  # noqa: E402
from cairn.api.deps import get_runtime  # noqa: E402
from cairn.api.routes.admin import router as admin_router  # noqa: E402
from cairn.api.routes.badges import router as badges_router  # noqa: E402
from cairn.api.routes.journeys import router as journeys_router  # noqa: E402
from cairn.api.routes.points import router as points_router  # noqa: E402
from cairn.errors import UnknownBadgeError, ValidationError  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: flush pending rewards on the way out."""
    logger.info("Cairn API started")
    yield
    if get_runtime.cache_info().currsize:
        await get_runtime().aclose()
    logger.info("Cairn API shutting down")


app = FastAPI(
    title="Cairn Engagement API",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(UnknownBadgeError)
async def unknown_badge_handler(request: Request, exc: UnknownBadgeError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


# Mount routers
app.include_router(badges_router, prefix="/api")
app.include_router(journeys_router, prefix="/api")
app.include_router(points_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
