"""
auth/tokens.py -- Stateless bearer tokens (JWT) and the auth cookie helper.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (principal id), email, iat,
       exp and jti. Verification needs nothing but the signing secret and the
       current time -- there is no session table.

  jti: a random id per token. Nothing checks it today; it is in the format so
       a denylist (token id + expiry) can be added at the gate later without
       invalidating tokens already in circulation.

  Expiry: checked here against an injectable clock rather than inside
       jose.jwt.decode. A token is valid strictly before exp; at exp it is
       expired. jose's own check accepts exp == now, and cannot be driven by a
       test clock.

  Failure reasons: MALFORMED, INVALID_SIGNATURE and EXPIRED are distinguished
       on TokenError.reason for logs only. All three carry INVALID_TOKEN as the
       public message, so a client cannot tell which check failed.

  Secret: TokenService receives its secret in the constructor. api/main.py
       builds the single instance from Settings in the lifespan; tests build
       their own with a known secret.

Layer rule: no imports from api/ or tracker/.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.models import Principal
from core.errors import INVALID_TOKEN, AuthenticationError

ALGORITHM = "HS256"
DEFAULT_EXPIRE_SECONDS = 24 * 60 * 60
AUTH_COOKIE = "token"


class TokenFailure(str, enum.Enum):
    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"


class TokenError(AuthenticationError):
    """A presented token failed verification.

    reason is for diagnostics; message and code are the same for every reason.
    """

    def __init__(self, reason: TokenFailure) -> None:
        super().__init__(INVALID_TOKEN, code="invalid_token")
        self.reason = reason


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies signed, expiring identity tokens.

    Usage:
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        token = tokens.issue(user.id, user.email)
        principal = tokens.verify(token)   # raises TokenError
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a signing secret.")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._clock = clock or _utcnow

    def _now(self) -> int:
        return int(self._clock().timestamp())

    def issue(self, principal_id: str, email: str) -> str:
        """Encode a signed JWT for the principal, expiring expire_seconds from now."""
        issued_at = self._now()
        payload = {
            "sub": principal_id,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + self.expire_seconds,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> Principal:
        """Verify signature and expiry and return the bound identity.

        Raises TokenError with the reason that applied first:
          MALFORMED         -- not a JWT, or claims missing / wrong type
          INVALID_SIGNATURE -- signed with another key or algorithm
          EXPIRED           -- now >= exp
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise TokenError(TokenFailure.MALFORMED) from exc
        if header.get("alg") != ALGORITHM:
            raise TokenError(TokenFailure.INVALID_SIGNATURE)

        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as exc:
            raise TokenError(TokenFailure.INVALID_SIGNATURE) from exc

        subject = claims.get("sub")
        email = claims.get("email")
        expires_at = claims.get("exp")
        if not isinstance(subject, str) or not subject or not isinstance(email, str):
            raise TokenError(TokenFailure.MALFORMED)
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            raise TokenError(TokenFailure.MALFORMED)

        if self._now() >= expires_at:
            raise TokenError(TokenFailure.EXPIRED)
        return Principal(id=subject, email=email)


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the token lifetime so both expire together.
    """
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(AUTH_COOKIE)
