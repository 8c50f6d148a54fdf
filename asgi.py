"""
asgi.py -- ASGI entry point for the task tracker.

api/main.py owns app assembly; this module only gives servers a stable
import path.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
