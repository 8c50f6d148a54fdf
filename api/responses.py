"""
api/responses.py -- Builds the error envelope shared by handlers and routes.

Lives outside api/main.py so route modules can produce an error response
directly (e.g. login, which must add Cache-Control on failure too) without
importing the app module.
"""

from fastapi.responses import JSONResponse

from api.models import ErrorResponse
from core.errors import TrackerError


def error_response(exc: TrackerError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message, code=exc.code).model_dump(exclude_none=True),
    )
