"""
API Dependencies
================

FastAPI dependencies resolving the application's session store, export task
manager and the session addressed by a request path.
"""

from typing import Annotated

from fastapi import Depends, Request

from batchqr.core.queue.task_manager import TaskManager
from batchqr.core.session import EditingSession, SessionStore


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_task_manager(request: Request) -> TaskManager:
    return request.app.state.task_manager


def get_session(
    session_id: str, store: Annotated[SessionStore, Depends(get_session_store)]
) -> EditingSession:
    """Resolve the session_id path parameter; unknown ids raise SessionNotFoundError."""
    return store.get(session_id)


SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
TaskManagerDep = Annotated[TaskManager, Depends(get_task_manager)]
SessionDep = Annotated[EditingSession, Depends(get_session)]
