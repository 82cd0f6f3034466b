"""
Custom exception hierarchy for the Corps Journal core.

Rule: every HTTP error has a machine-readable `code` string so the UI shell
can branch on it without parsing English messages.

Core services signal "not found" and "refused" with None / False sentinels
and structured results. Routers translate those sentinels into the
exceptions below. MediaStorageError is the one error raised by the core
itself: a failed attachment copy must never be dropped silently.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from corpsjournal.core.logging import setup_logger

logger = setup_logger("errors")


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class CorpsJournalError(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class EntryNotFoundError(CorpsJournalError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        super().__init__(
            message=f"Journal entry {entry_id} not found.",
            details={"id": entry_id},
        )


class BadgeNotFoundError(CorpsJournalError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "BADGE_NOT_FOUND"

    def __init__(self, badge_id: str):
        super().__init__(
            message=f"Badge {badge_id} has not been awarded.",
            details={"id": badge_id},
        )


class ProfileNotFoundError(CorpsJournalError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "PROFILE_NOT_FOUND"

    def __init__(self):
        super().__init__(message="Service info has not been set up yet.")


class JournalLockedError(CorpsJournalError):
    http_status = status.HTTP_409_CONFLICT
    code = "JOURNAL_LOCKED"

    def __init__(self, reason: str | None, message: str | None = None):
        super().__init__(
            message=message or "The journal is read-only.",
            details={"reason": reason} if reason else {},
        )


class StartDateChangeLimitError(CorpsJournalError):
    http_status = status.HTTP_409_CONFLICT
    code = "START_DATE_CHANGE_LIMIT"

    def __init__(self):
        super().__init__(
            message="No service start date changes left.",
            details={"date_changes_left": 0},
        )


class ImportValidationError(CorpsJournalError):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "IMPORT_INVALID"

    def __init__(self, message: str):
        super().__init__(message=message)


class MediaStorageError(CorpsJournalError):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "MEDIA_STORAGE_ERROR"

    def __init__(self, message: str, source: str | None = None):
        super().__init__(
            message=message,
            details={"source": source} if source else {},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def corpsjournal_exception_handler(
    request: Request, exc: CorpsJournalError
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
