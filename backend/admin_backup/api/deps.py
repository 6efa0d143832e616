from pathlib import Path

from admin_backup.core.config import get_settings


def get_data_dir() -> Path:
    """Backup directory served by the read API, overridden by ``create_app(data_dir=...)``."""
    return Path(get_settings().data_dir)
