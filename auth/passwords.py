"""
auth/passwords.py -- Password hashing (bcrypt, used directly).

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection builds a >72-byte probe password that bcrypt 4.x rejects, and the
direct API is small enough not to need a wrapper.

Hashes are self-describing ("$2b$10$<salt><digest>"), so the work factor
(Settings.bcrypt_rounds) can be raised without migrating stored hashes --
checkpw reads the cost from the stored string.

Neither function logs its inputs. Failures of the primitive surface as
InternalError, never as a returned plaintext or a silent False.

Layer rule: no imports from api/ or tracker/.
"""

from __future__ import annotations

import logging

import bcrypt

from core.config import get_settings
from core.errors import INTERNAL_ERROR, InternalError

logger = logging.getLogger("tasktracker.auth")

# bcrypt only looks at the first 72 bytes of input.
_BCRYPT_MAX_BYTES = 72


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the plaintext password.

    rounds defaults to Settings.bcrypt_rounds. Inputs longer than 72 bytes are
    rejected at the API layer (SignupRequest) before reaching this function.
    """
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    try:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")
    except (ValueError, TypeError) as exc:
        logger.error("Password hashing failed: %s", type(exc).__name__)
        raise InternalError(INTERNAL_ERROR, code="hash_failed") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    checkpw compares in constant time. A mismatch is False; a stored hash
    bcrypt cannot parse raises InternalError because it means the credential
    store is corrupt, not that the caller guessed wrong.
    """
    candidate = plain.encode("utf-8")
    if len(candidate) > _BCRYPT_MAX_BYTES:
        # Could never have been hashed by hash_password().
        return False
    try:
        return bcrypt.checkpw(candidate, hashed.encode("utf-8"))
    except ValueError as exc:
        logger.error("Stored password hash is malformed")
        raise InternalError(INTERNAL_ERROR, code="malformed_hash") from exc


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than later ones. accounts.authenticate_user() verifies against this
# when the email is unknown, so an unknown email costs the same bcrypt work
# as a wrong password.
DUMMY_HASH: str = hash_password("tasktracker_timing_dummy")
