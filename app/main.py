from fastapi import FastAPI

from app.inventsight.api import api_router
from app.inventsight.core.config import settings
from app.inventsight.core.errors import setup_exception_handlers
from app.inventsight.core.logging import configure_logging
from app.inventsight.db.session import init_db
from app.inventsight.middleware.observability import ObservabilityMiddleware
from app.inventsight.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    init_db()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
