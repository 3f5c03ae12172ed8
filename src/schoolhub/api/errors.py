"""Reusable error primitives for API exception handling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..exceptions import IntegrityConstraintViolation, NotFoundError, RepositoryError
from ..media.media_errors import (
    InvalidAssetError,
    MediaSlotError,
    PayloadTooLargeError,
    PersistFailedError,
    SlotConflictError,
    UnknownSlotError,
    UnsupportedMediaError,
    UploadFailedError,
)


@dataclass(slots=True)
class ApiError(Exception):
    """Structured application-level error for HTTP handlers."""

    status_code: int
    code: str
    message: str
    headers: Mapping[str, str] | None = None

    def to_response(self) -> JSONResponse:
        """Materialise the error into a ``JSONResponse`` instance."""

        return JSONResponse(
            status_code=self.status_code,
            content={"error": {"code": self.code, "message": self.message}},
            headers=dict(self.headers or {}),
        )


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    """Convert :class:`ApiError` exceptions into JSON payloads."""

    return exc.to_response()


# Most specific classes first.
_ERROR_STATUS: tuple[tuple[type[Exception], int, str], ...] = (
    (UnknownSlotError, status.HTTP_400_BAD_REQUEST, "unknown_slot"),
    (InvalidAssetError, status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_asset"),
    (UnsupportedMediaError, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "unsupported_media_type"),
    (PayloadTooLargeError, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "payload_too_large"),
    (UploadFailedError, status.HTTP_502_BAD_GATEWAY, "upload_failed"),
    (SlotConflictError, status.HTTP_409_CONFLICT, "slot_conflict"),
    (PersistFailedError, status.HTTP_500_INTERNAL_SERVER_ERROR, "persist_failed"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
    (IntegrityConstraintViolation, status.HTTP_409_CONFLICT, "integrity_conflict"),
    (RepositoryError, status.HTTP_500_INTERNAL_SERVER_ERROR, "database_error"),
)


def api_error_from(exc: Exception) -> ApiError:
    """Map a domain exception onto its HTTP representation."""

    for error_type, status_code, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return ApiError(status_code, code, str(exc))
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", str(exc))


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return api_error_from(exc).to_response()


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(MediaSlotError, domain_error_handler)
    app.add_exception_handler(RepositoryError, domain_error_handler)


def bad_request_error(message: str) -> ApiError:
    """Return an :class:`ApiError` for a malformed request body."""

    return ApiError(status.HTTP_400_BAD_REQUEST, "bad_request", message)


def validation_error(message: str) -> ApiError:
    """Return an :class:`ApiError` for a payload failing schema validation."""

    return ApiError(status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", message)


__all__ = [
    "ApiError",
    "api_error_from",
    "api_error_handler",
    "bad_request_error",
    "register_error_handlers",
    "validation_error",
]
