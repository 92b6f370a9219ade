from fastapi import FastAPI

from app.tillpoint.api import api_router
from app.tillpoint.core.config import settings
from app.tillpoint.core.errors import setup_exception_handlers
from app.tillpoint.core.logging import configure_logging
from app.tillpoint.middleware.observability import ObservabilityMiddleware
from app.tillpoint.middleware.tenant import TenantContextMiddleware
from app.tillpoint.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
