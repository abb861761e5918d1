"""Backup and restore of a search index through day-windowed exports."""

from .manager import BackupManager
from .models import BackupManifest, DayExportResult, JobStatus, RunSummary, UploadResult

__all__ = [
    "BackupManager",
    "BackupManifest",
    "DayExportResult",
    "JobStatus",
    "RunSummary",
    "UploadResult",
]
