"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as app.state.limiter next to
SlowAPIMiddleware) and api/routes/auth.py (the login limit).

Decorator order on a route:

    @router.post("/login")
    @limiter.limit(...)
    def login(request: Request, ...): ...

The router decorator goes on top so FastAPI registers the limiter's wrapper.
SlowAPIMiddleware leaves routes with a decorator limit to that wrapper, so a
route registered without it is not limited at all.

One instance for the whole app: counters live in its in-memory storage, and a
second Limiter would keep separate counts.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
