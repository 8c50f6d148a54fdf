"""
auth/accounts.py -- Signup and login flows.

Both flows are single-request state machines with two terminal states: the
caller gets a result, or a TrackerError is raised. Route handlers in
api/routes/auth.py call these and shape the response; they never inline the
lookup + verify sequence.

Enumeration resistance:
  - Unknown email and wrong password raise the same AuthenticationError
    (INVALID_CREDENTIALS, code "invalid_credentials").
  - Unknown email still runs bcrypt against DUMMY_HASH so both paths cost the
    same time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.passwords import DUMMY_HASH, hash_password, verify_password
from auth.store import UserStore, normalize_email
from auth.tokens import TokenService
from core.errors import EMAIL_TAKEN, INVALID_CREDENTIALS, AuthenticationError, ConflictError, InternalError

logger = logging.getLogger("tasktracker.auth")


@dataclass
class LoginResult:
    user: User
    token: str


def register_user(store: UserStore, name: str, email: str, password: str) -> User:
    """Create a principal and return the stored record.

    Raises ConflictError if the email is already registered -- whether the
    pre-check finds it or a concurrent signup wins the UNIQUE constraint.
    The existing record is never touched.
    """
    email = normalize_email(email)
    if store.get_by_email(email) is not None:
        logger.info("Signup rejected: email already registered")
        raise ConflictError(EMAIL_TAKEN, code="email_taken")

    hashed = hash_password(password)
    try:
        user_id = store.create_user(User(name=name, email=email, hashed_password=hashed))
    except IntegrityError as exc:
        logger.info("Signup rejected: concurrent registration for the same email")
        raise ConflictError(EMAIL_TAKEN, code="email_taken") from exc

    created = store.get_by_id(user_id)
    if created is None:
        raise InternalError("User not found after write.")
    logger.info("User registered: id=%s", created.id)
    return created


def authenticate_user(store: UserStore, email: str, password: str) -> User:
    """Return the user whose credentials match, or raise AuthenticationError.

    Always runs bcrypt whether or not the email exists. Do NOT return early
    before verify_password().
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, DUMMY_HASH)
        logger.info("Login failed: unknown_email")
        raise AuthenticationError(INVALID_CREDENTIALS, code="invalid_credentials")
    if not verify_password(password, user.hashed_password):
        logger.info("Login failed: bad_password id=%s", user.id)
        raise AuthenticationError(INVALID_CREDENTIALS, code="invalid_credentials")
    return user


def login(store: UserStore, tokens: TokenService, email: str, password: str) -> LoginResult:
    """Authenticate and issue a token for the principal."""
    user = authenticate_user(store, email, password)
    token = tokens.issue(user.id, user.email)
    logger.info("Login succeeded: id=%s", user.id)
    return LoginResult(user=user, token=token)
