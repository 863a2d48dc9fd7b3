from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException


logger = logging.getLogger(__name__)


class CounsellingError(Exception):
    """Base for errors a service raises on purpose; carries the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str = 'Server error'):
        super().__init__(message)
        self.message = message


class ValidationError(CounsellingError):
    status_code = 400


class ConflictError(CounsellingError):
    """Uniqueness or business-rule conflict (duplicate slot, second active booking, open session)."""

    status_code = 400


class AuthenticationError(CounsellingError):
    status_code = 401


class ForbiddenError(CounsellingError):
    status_code = 403


class NotFoundError(CounsellingError):
    """Entity absent, or filtered out by an ownership predicate; callers cannot tell which."""

    status_code = 404


class RateLimitError(CounsellingError):
    status_code = 429


class StoreError(CounsellingError):
    status_code = 500


def error_body(message: str) -> dict:
    return {'success': False, 'message': message}


async def _counselling_error_handler(request: Request, exc: CounsellingError):
    if isinstance(exc, StoreError):
        # Store detail stays in the server log only.
        return JSONResponse(status_code=500, content=error_body('Server error'))
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def _http_error_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else 'Request failed'
    return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=getattr(exc, 'headers', None))


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = '.'.join(str(part) for part in first.get('loc', ()) if part != 'body')
    message = first.get('msg', 'Invalid request')
    if field:
        message = f'{field}: {message}'
    return JSONResponse(status_code=422, content=error_body(message))


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception('unhandled_error path=%s method=%s', request.url.path, request.method)
    return JSONResponse(status_code=500, content=error_body('Server error'))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CounsellingError, _counselling_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
