from fastapi import APIRouter
from admin_backup.api.routes import health, backups

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(backups.router)
