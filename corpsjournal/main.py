from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from corpsjournal.db.base import get_db
from corpsjournal.core.config import settings
from corpsjournal.core.logging import setup_logger
from corpsjournal.routers import entries as entries_router
from corpsjournal.routers import media as media_router
from corpsjournal.routers import backup as backup_router
from corpsjournal.routers import profile as profile_router
from corpsjournal.routers import badges as badges_router
from corpsjournal.routers import lock as lock_router
from corpsjournal.core.errors import (
    CorpsJournalError,
    corpsjournal_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

logger = setup_logger("api")

app = FastAPI(
    title="Corps Journal API",
    description=(
        "**Local persistence and data-integrity core of the Corps Journal app**\n\n"
        "Journal entries with media attachments, media-stripped backups, "
        "achievement badges and the end-of-service lock.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(CorpsJournalError, corpsjournal_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(entries_router.router)
app.include_router(media_router.router)
app.include_router(backup_router.router)
app.include_router(profile_router.router)
app.include_router(badges_router.router)
app.include_router(lock_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the local
    database are reachable. Returns HTTP 503 if the database is unusable.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError as exc:
        logger.error(f"Health check database probe failed: {exc}")
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
