import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from admin_backup.api import api_router
from admin_backup.api.deps import get_data_dir
from admin_backup.core.config import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def create_app(data_dir: Optional[str] = None) -> FastAPI:
    """
    Build the read-only backup API.

    Args:
        data_dir: Directory to serve, defaults to the configured data_dir

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="Administrative Boundary Backup",
        description="""
    ## Administrative Boundary Backup API

    Read-only access to administrative boundary snapshots fetched from the Overpass API.

    * `/health` - Server status and data directory
    * `/countries` - Stored country list
    * `/backups` - Index of stored backup files
    * `/admin-areas` - Admin areas of one country and level
    """,
        version="1.0.0",
        openapi_tags=[
            {"name": "Health", "description": "Server status"},
            {"name": "Backups", "description": "Stored countries and admin area snapshots"},
        ],
    )

    if data_dir is not None:
        served = Path(data_dir)
        app.dependency_overrides[get_data_dir] = lambda: served

    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
