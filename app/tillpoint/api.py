from fastapi import APIRouter

from app.tillpoint.core.config import settings
from app.tillpoint.routers.auth import router as auth_router
from app.tillpoint.routers.health import router as health_router
from app.tillpoint.routers.metrics import router as metrics_router
from app.tillpoint.routers.terminals import router as terminals_router
from app.tillpoint.routers.tills import router as tills_router
from app.tillpoint.routers.users import router as users_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(auth_router, prefix="/tillpoint/auth", tags=["auth"])
api_router.include_router(users_router, prefix="/tillpoint", tags=["users"])
api_router.include_router(terminals_router, tags=["terminals"])
api_router.include_router(tills_router, tags=["tills"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
