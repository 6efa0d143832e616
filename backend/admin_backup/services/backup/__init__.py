"""Backup pipeline: orchestration, storage and chunked fallback."""

from admin_backup.services.backup.backup_service import BackupOptions, BackupRunResult, BackupService, run_backup

__all__ = ["BackupOptions", "BackupRunResult", "BackupService", "run_backup"]
