"""Mapping of repository errors onto HTTP responses.

Whether internal detail may leave the process is an explicit ``production``
argument, decided once where the app is built.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .repositories.exceptions import ErrorKind, RepositoryError

LOGGER = logging.getLogger("uvicorn.error")

GENERIC_MESSAGE = "An unexpected error occurred"
CONNECTION_MESSAGE = "Unable to connect to the database"

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.CONNECTION: 503,
    ErrorKind.VALIDATION: 400,
    ErrorKind.GENERIC: 500,
}


def error_status(exc: BaseException) -> int:
    if isinstance(exc, RepositoryError):
        return STATUS_BY_KIND[exc.kind]
    return 500


def _jsonable(value: Any) -> Any:
    # Filters may hold ObjectIds or datetimes
    return json.loads(json.dumps(value, default=str))


def error_payload(exc: BaseException, *, production: bool) -> dict[str, Any]:
    status = error_status(exc)
    if isinstance(exc, RepositoryError):
        payload: dict[str, Any] = {"error": exc.kind.value, "message": exc.message, "status": status}
        if exc.kind is ErrorKind.CONNECTION:
            payload["message"] = CONNECTION_MESSAGE
        details = exc.to_dict(include_internal=not production)
        details.pop("error", None)
        details.pop("message", None)
        if details:
            payload["details"] = _jsonable(details)
    else:
        payload = {"error": "unexpected_error", "message": str(exc) or GENERIC_MESSAGE, "status": status}

    if production and status >= 500:
        payload["message"] = GENERIC_MESSAGE
        payload.pop("details", None)
    return payload


def register_exception_handlers(app: FastAPI, *, production: bool) -> None:
    """Translate :class:`RepositoryError` into JSON responses on ``app``."""

    async def _repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
        status = error_status(exc)
        if status >= 500:
            LOGGER.error(
                "API error on %s %s: %s (context=%s)",
                request.method,
                request.url.path,
                exc,
                exc.context,
                exc_info=exc.cause or exc,
            )
        else:
            LOGGER.info("API error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(error_payload(exc, production=production), status_code=status)

    app.add_exception_handler(RepositoryError, _repository_error_handler)


__all__ = [
    "STATUS_BY_KIND",
    "error_payload",
    "error_status",
    "register_exception_handlers",
]
