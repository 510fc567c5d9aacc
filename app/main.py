from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.crm import router as crm_router
from app.core.config import settings
from app.core.database import init_db
from app.core.logging import setup_logging
from app.services.ticket_errors import InvalidFilter, StoreUnavailable, Unauthorized

app = FastAPI(title="GauntletCRM")
logger = structlog.get_logger(__name__)


@app.exception_handler(InvalidFilter)
async def invalid_filter_handler(request: Request, exc: InvalidFilter) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "invalid_filter", "detail": str(exc)})


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    logger.warning("actor_rejected", path=request.url.path, reason=str(exc))
    return JSONResponse(status_code=403, content={"error": "unauthorized"})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": "store_unavailable"})


origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
async def on_startup() -> None:
    setup_logging()
    if settings.APP_ENV.lower() != "development" and settings.JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in non-development environments")
    await init_db()


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(crm_router)
