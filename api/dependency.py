"""
FastAPI Dependency Injection Providers

All dependencies are stored in app.state.container and injected via Depends().
API routers MUST only import from this file — never directly from application or infrastructure.
"""
from typing import Annotated, Callable

from fastapi import Depends
from starlette.requests import HTTPConnection

from application.TurnCoordinator import TurnCoordinator
from infrastructures.events import EventBus, SESSION_STATE_TOPIC  # noqa: F401  (re-exported for routers)


def from_container(attr: str) -> Callable:
    """
    Factory function to extract an attribute from app.state.container.
    Works with both HTTP (Request) and WebSocket endpoints, which share
    the HTTPConnection base class.
    """
    def dep(conn: HTTPConnection):
        return getattr(conn.app.state.container, attr)

    return dep


TurnCoordinatorDep = Annotated[TurnCoordinator, Depends(from_container("turn_coordinator"))]
EventBusDep = Annotated[EventBus, Depends(from_container("event_bus"))]
