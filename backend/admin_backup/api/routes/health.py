from pathlib import Path

from fastapi import APIRouter, Depends

from admin_backup.api.deps import get_data_dir

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "",
    summary="Health check",
    description="Reports that the server is up and which data directory it serves",
)
def health_check(data_dir: Path = Depends(get_data_dir)):
    return {
        "ok": True,
        "data_dir": str(data_dir.resolve()),
    }
