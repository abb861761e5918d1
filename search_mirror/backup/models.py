"""Data models for backup/restore operations."""

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .._utils import day_start_iso, format_day, next_day


class JobStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"  # recoverable, run continues
    FATAL = "fatal"  # remaining work is aborted


class ExportWindow(BaseModel):
    """Half-open day interval [day, day + 1) over the timestamp field."""

    day: date

    @property
    def label(self) -> str:
        return format_day(self.day)

    def filter_expression(self, timestamp_field: str) -> str:
        return (
            f"{timestamp_field} ge {day_start_iso(self.day)} "
            f"and {timestamp_field} lt {day_start_iso(next_day(self.day))}"
        )


class JobResult(BaseModel):
    """Outcome of one scheduled job."""

    name: str
    status: JobStatus = JobStatus.SUCCEEDED
    error: Optional[str] = None
    documents: int = 0

    @property
    def ok(self) -> bool:
        return self.status == JobStatus.SUCCEEDED


class DayExportResult(JobResult):
    day: date
    pages: int = 0
    files: List[str] = Field(default_factory=list)
    expected_documents: Optional[int] = None
    duplicate_keys: int = 0


class UploadResult(JobResult):
    file: str


class RunSummary(BaseModel):
    """Per-day and per-file outcome of a backup/restore run."""

    source_index: str
    target_index: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    schema_captured: bool = False
    schema_error: Optional[str] = None
    source_doc_count: Optional[int] = None
    days: List[DayExportResult] = Field(default_factory=list)
    uploads: List[UploadResult] = Field(default_factory=list)
    fatal_error: Optional[str] = None

    @property
    def exported_documents(self) -> int:
        return sum(d.documents for d in self.days)

    @property
    def uploaded_documents(self) -> int:
        return sum(u.documents for u in self.uploads)

    @property
    def failed_days(self) -> List[DayExportResult]:
        return [d for d in self.days if not d.ok]

    @property
    def failed_uploads(self) -> List[UploadResult]:
        return [u for u in self.uploads if not u.ok]

    @property
    def exit_code(self) -> int:
        if self.fatal_error:
            return 1
        if self.failed_days or self.failed_uploads:
            return 2
        return 0


class BackupManifest(BaseModel):
    """Backup manifest written next to the export files."""

    backup_id: str = Field(..., description="Unique backup identifier")
    created_at: datetime = Field(..., description="Backup creation timestamp")
    search_mirror_version: str = Field(..., description="search-mirror version")
    source_index: str
    start_date: date
    end_date: date
    source_doc_count: Optional[int] = None
    key_field: Optional[str] = None
    files: Dict[str, str] = Field(default_factory=dict, description="File name to SHA-256 checksum")
