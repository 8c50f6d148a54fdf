"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tracker/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/ or tracker/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered principal.

    email is stored lowercased; UserStore normalizes on both write and lookup
    so "Ann@X.com" and "ann@x.com" are the same account.

    hashed_password is a self-describing bcrypt string ("$2b$<rounds>$...").
    It must never leave the auth layer -- responses are built from
    id/name/email only.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    hashed_password: str
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Principal:
    """The identity resolved from a verified token.

    This is what the authentication gate binds to the request. It is built
    from token claims alone -- no credential store lookup -- so a handler
    holding a Principal knows the token was authentic and unexpired, nothing
    more.
    """

    id: str
    email: str
