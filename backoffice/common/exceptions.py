"""Back-office errors rendered as RFC 7807 ``application/problem+json``.

Only request-level failures surface here: auth (401/403), a caller without an
active tenant (409) and invalid query input such as a bad month key (422).
Reconciliation write failures never reach this layer; they are logged and
swallowed by the attendance service.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://backoffice.local/errors"
PROBLEM_JSON = "application/problem+json"


class AppException(Exception):
    """Base for every error the API reports as a problem document."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, list[str]]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class UnauthorizedException(AppException):
    """401: the scheduler trigger or bearer credentials were rejected."""

    def __init__(self, detail: str = "Unauthorized.") -> None:
        super().__init__(401, "unauthorized", "Unauthorized", detail)


class ForbiddenException(AppException):
    """403: authenticated, but the tenant role does not allow this view."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(403, "forbidden", "Forbidden", detail)


class ConflictError(AppException):
    """409: the caller's session state does not permit the request yet."""

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(409, "conflict", "Conflict", detail, errors={field: [detail]})


class ValidationException(AppException):
    """422: a parameter parsed but is not acceptable (e.g. month 13)."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            422,
            "validation-error",
            "Validation Error",
            "One or more fields failed validation.",
            errors=errors,
        )


# ── Problem documents ───────────────────────────────────────────────

def _problem(
    request: Request,
    *,
    status: int,
    error_type: str,
    title: str,
    detail: str,
    errors: Optional[dict[str, list[str]]] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.url.path,
    }
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_JSON)


def _field_name(loc: Sequence[Any]) -> str:
    # Drop the leading "query"/"body" segment FastAPI prefixes
    if len(loc) > 1:
        return ".".join(str(part) for part in loc[1:])
    return str(loc[0]) if loc else "unknown"


async def _app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return _problem(
        request,
        status=exc.status_code,
        error_type=exc.error_type,
        title=exc.title,
        detail=exc.detail,
        errors=exc.errors,
    )


async def _request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        errors.setdefault(_field_name(err.get("loc", ())), []).append(
            err.get("msg", "Invalid value")
        )
    return _problem(
        request,
        status=422,
        error_type="validation-error",
        title="Validation Error",
        detail="Request validation failed.",
        errors=errors,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the problem+json handlers to the app (called from main.py)."""
    app.add_exception_handler(AppException, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
