"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token sources are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "token" cookie -- set by POST /auth/login for the browser client.

The header wins when both are present, so a client can override a stale
cookie explicitly.

get_current_principal() is the gate: it verifies the token through the
TokenService on app.state and binds the resolved Principal to
request.state.principal. It deliberately does NOT load the user record and
does NOT check ownership -- a verified token is all it vouches for.
Ownership is enforced by TrackerStore queries in the route layer.

Layer rule: no imports from api/ or tracker/. This module may import from
fastapi because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import Principal
from auth.tokens import AUTH_COOKIE, TokenError, TokenService
from core.errors import INVALID_TOKEN, NO_TOKEN, AuthenticationError

logger = logging.getLogger("tasktracker.auth")

_BEARER_PREFIX = "bearer "


def extract_token(request: Request) -> str | None:
    """Return the raw token from the Authorization header or the cookie, or None."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header[: len(_BEARER_PREFIX)].lower() == _BEARER_PREFIX:
        token = auth_header[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    return request.cookies.get(AUTH_COOKIE) or None


def get_current_principal(request: Request) -> Principal:
    """Require a valid token. Raises AuthenticationError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...

    or router-wide:
        router = APIRouter(dependencies=[Depends(get_current_principal)])
    """
    token = extract_token(request)
    if token is None:
        logger.info("Rejected %s %s: no token", request.method, request.url.path)
        raise AuthenticationError(NO_TOKEN, code="no_token")

    token_service: TokenService = request.app.state.token_service
    try:
        principal = token_service.verify(token)
    except TokenError as exc:
        logger.info("Rejected %s %s: %s token", request.method, request.url.path, exc.reason.value)
        raise AuthenticationError(INVALID_TOKEN, code="invalid_token") from exc

    request.state.principal = principal
    return principal
