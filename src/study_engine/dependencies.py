from __future__ import annotations

from fastapi import Request

from .errors import StorageUnavailable
from .store import StudyStore


def get_store(request: Request) -> StudyStore:
    """Return the store handle opened by the application lifespan."""
    store = getattr(request.app.state, "store", None)
    if store is None or not store.is_open:
        raise StorageUnavailable("request", "study store is not open")
    return store
