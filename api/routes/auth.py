"""
api/routes/auth.py -- Signup, login and session endpoints.

Routes:
  POST /auth/signup     -- create an account; 201 with public profile
  POST /auth/login      -- password login; token in body + httpOnly cookie
  POST /auth/logout     -- clears the cookie; 200
  GET  /auth/me         -- profile of the bound principal (requires auth)
  GET  /auth/protected  -- alias of /auth/me used by the browser client

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit, read
      on every request; 429 once exceeded).
  accounts.authenticate_user() provides timing equalization -- use it, never
      inline get_by_email() + verify_password().
  Login failures for unknown email and wrong password share one message and
      code (core.errors.INVALID_CREDENTIALS).
  Cache-Control: no-store on every login response, success or failure.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse, MessageResponse, SignupRequest, SignupResponse, UserPublic
from api.responses import error_response
from auth import accounts
from auth.dependencies import get_current_principal
from auth.models import Principal
from auth.store import UserStore
from auth.tokens import TokenService, clear_auth_cookie, set_auth_cookie
from core.config import get_settings
from core.errors import INVALID_TOKEN, AuthenticationError

_settings = get_settings()

# Auth policy:
# - POST /auth/signup:     public
# - POST /auth/login:      public, rate limited
# - POST /auth/logout:     public -- clearing a cookie needs no prior auth
# - GET  /auth/me:         requires auth (get_current_principal)
# - GET  /auth/protected:  requires auth (get_current_principal)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> SignupResponse:
    """Register a new principal. Duplicate email -> 400 "Email already registered"."""
    user_store: UserStore = request.app.state.user_store
    user = accounts.register_user(user_store, body.name, body.email, body.password)
    return SignupResponse(message="Signup successful", user=UserPublic.from_user(user))


def _login_rate_limit() -> str:
    return _settings.login_rate_limit


# @router must be outermost: FastAPI has to register the limiter's wrapper,
# otherwise the limit is never checked.
@router.post("/login", response_model=LoginResponse)
@limiter.limit(_login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return the token and set it as a cookie."""
    user_store: UserStore = request.app.state.user_store
    token_service: TokenService = request.app.state.token_service
    try:
        result = accounts.login(user_store, token_service, body.email, body.password)
    except AuthenticationError as exc:
        resp = error_response(exc)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            message="Login successful",
            user=UserPublic.from_user(result.user),
            token=result.token,
        ).model_dump(),
    )
    set_auth_cookie(resp, result.token, max_age=token_service.expire_seconds, secure=_settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout", response_model=MessageResponse)
def logout() -> JSONResponse:
    """Clear the token cookie. The token itself stays valid until it expires."""
    resp = JSONResponse(content=MessageResponse(message="Logged out").model_dump())
    clear_auth_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
@router.get("/protected", response_model=MeResponse, include_in_schema=False)
def me(request: Request, principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return the profile of the principal bound by the gate.

    A valid token for a principal that no longer exists is answered like any
    other invalid token.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(principal.id)
    if user is None:
        raise AuthenticationError(INVALID_TOKEN, code="invalid_token")
    return MeResponse(message="Authenticated", user=UserPublic.from_user(user))
