"""FastAPI dependency injection — provides the form store and session manager.

Both are built once in the lifespan handler and stashed on ``app.state``.
"""

from fastapi import Request

from intake_engine.formstore import FormStore

from intake_server.manager import SessionManager


def get_store(request: Request) -> FormStore:
    """Return the FormStore singleton from ``app.state``."""
    return request.app.state.store


def get_manager(request: Request) -> SessionManager:
    """Return the SessionManager singleton from ``app.state``."""
    return request.app.state.manager
