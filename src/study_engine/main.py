from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .errors import StorageUnavailable, StudyStoreError
from .logging import configure_logging, logger
from .middleware import AccessLogMiddleware
from .routers import analytics, attempts, health, review
from .store import StudyStore


async def _handle_store_error(request: Request, exc: Exception) -> JSONResponse:
    """Map storage failures to HTTP responses.

    ストアを開けない場合は 503、書き込み/読み出し失敗は 500 を返す。
    再試行するかどうかはクライアント（採点 UI）側の判断とする。
    """
    status_code = 503 if isinstance(exc, StorageUnavailable) else 500
    operation = getattr(exc, "operation", "unknown")
    logger.error(
        "store_error_response",
        path=request.url.path,
        operation=operation,
        error_type=exc.__class__.__name__,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.__class__.__name__, "operation": operation},
    )


def create_app(db_path: Optional[str] = None) -> FastAPI:
    """Create the local study API bound to one SQLite store.

    ストアはアプリのライフサイクル（lifespan）で open/close し、
    各ルータには依存関数 get_store 経由で渡す。
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store = StudyStore(db_path or settings.study_db_path).open()
        app.state.store = store
        logger.info("app_startup", environment=settings.environment, db_path=store.db_path)
        try:
            yield
        finally:
            store.close()
            app.state.store = None

    app = FastAPI(title="Quiz Study Engine API", version="0.1.0", lifespan=lifespan)
    app.state.store = None
    app.add_middleware(AccessLogMiddleware)
    app.add_exception_handler(StudyStoreError, _handle_store_error)

    app.include_router(health.router)
    app.include_router(attempts.router, prefix="/api/attempts")
    app.include_router(review.router, prefix="/api/review")
    app.include_router(analytics.router, prefix="/api/analytics")
    return app


app = create_app()
