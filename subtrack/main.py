"""
FastAPI application factory
"""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from subtrack.config import get_settings
from subtrack.api.deps import get_db
from subtrack.infrastructure.db.session import check_db_connection, init_db
from subtrack.api.v1 import subscriptions, timeline

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Catches every unhandled exception (sync routes included), logs the traceback"""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            tb_str = traceback.format_exc()
            logger.error(f"\n{'='*60}\nERROR on {request.method} {request.url.path}\n{tb_str}{'='*60}")
            return Response(content=f"Internal Server Error: {exc}", status_code=500)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app(create_tables: bool = True) -> FastAPI:
    """
    Application factory - создаёт и настраивает FastAPI приложение

    Args:
        create_tables: создать таблицы при старте (тесты подменяют БД и передают False)

    Returns:
        Настроенный FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="SubTrack",
        debug=settings.DEBUG,
        lifespan=lifespan if create_tables else None,
    )

    app.add_middleware(ErrorLoggingMiddleware)

    app.include_router(subscriptions.router)
    app.include_router(timeline.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready(db: Session = Depends(get_db)):
        """Readiness check endpoint (проверяет доступность БД)"""
        check_db_connection(db)
        return "ok"

    return app


if __name__ == "__main__":
    import uvicorn
    # Запуск на 127.0.0.1 (localhost): http://127.0.0.1:8000/docs
    uvicorn.run(
        "subtrack.main:create_app",
        factory=True,
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
