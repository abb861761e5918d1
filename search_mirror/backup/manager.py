"""Backup and restore orchestration for a search index."""

from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Dict, Optional

from .._utils import logger
from ..config import RunConfig
from ..errors import MirrorError, QueryError, SchemaFetchError
from ..service import SearchServiceClient
from .exporter import PaginatedExporter
from .models import BackupManifest, DayExportResult, JobStatus, RunSummary
from .restorer import BulkRestorer
from .scheduler import Job, WaveScheduler, day_windows
from .schema import fetch_schema, find_key_field, load_schema, save_schema
from .utils import (
    compute_checksum,
    generate_backup_id,
    load_manifest,
    manifest_file_name,
    save_manifest,
    schema_file_name,
)


class BackupManager:
    """Orchestrate backup of the source index and restore into the target."""

    def __init__(
        self,
        config: RunConfig,
        source_client: Optional[SearchServiceClient] = None,
        target_client: Optional[SearchServiceClient] = None,
    ):
        """Initialize backup manager.

        Args:
            config: Run configuration
            source_client: Optional client for the source service
            target_client: Optional client for the target service
        """
        self.config = config
        self.backup_dir = Path(config.backup_dir)
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        self.source_client = source_client or SearchServiceClient(config.source, config.request)
        self.target_client = target_client or SearchServiceClient(config.target, config.request)
        self.scheduler = WaveScheduler(
            config.export.parallelization_count,
            barrier=config.export.wave_barrier,
        )

    async def __aenter__(self) -> "BackupManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.source_client.aclose()
        await self.target_client.aclose()

    @property
    def schema_path(self) -> Path:
        return self.backup_dir / schema_file_name(self.config.source.index_name)

    @property
    def manifest_path(self) -> Path:
        return self.backup_dir / manifest_file_name(self.config.source.index_name)

    def new_summary(self) -> RunSummary:
        return RunSummary(
            source_index=self.config.source.index_name,
            target_index=self.config.target.index_name,
            started_at=datetime.now(timezone.utc),
        )

    async def backup(self, summary: Optional[RunSummary] = None) -> RunSummary:
        """Capture the source schema and export every day of the date range.

        Args:
            summary: Summary to fill in; a new one is created if None

        Returns:
            RunSummary with per-day export results
        """
        summary = summary or self.new_summary()
        source_index = self.config.source.index_name
        export = self.config.export
        logger.info(
            f"Starting backup of {source_index} for [{export.start_date}, {export.end_date}) "
            f"to {self.backup_dir}"
        )

        raw_schema = ""
        try:
            raw_schema = await fetch_schema(self.source_client, source_index)
            summary.schema_captured = True
        except SchemaFetchError as e:
            summary.schema_error = str(e)
            logger.error(f"Could not fetch schema, continuing with an empty one: {e}")

        try:
            save_schema(raw_schema, self.schema_path)
        except OSError as e:
            summary.fatal_error = f"Could not write schema file {self.schema_path}: {e}"
            logger.error(summary.fatal_error)
            summary.finished_at = datetime.now(timezone.utc)
            return summary

        key_field = find_key_field(raw_schema)

        try:
            summary.source_doc_count = await self.source_client.count_documents(source_index)
            logger.info(f"Source index {source_index} holds {summary.source_doc_count} documents")
        except QueryError as e:
            logger.warning(f"Could not count source documents: {e}")

        windows = list(day_windows(export.start_date, export.end_date))
        if not windows:
            logger.warning(
                "Start date equals end date, nothing to export. "
                "Set an explicit date range to export documents."
            )

        exporter = PaginatedExporter(
            self.source_client, source_index, self.backup_dir, export, key_field=key_field
        )
        jobs = [
            Job(
                name=window.label,
                run=partial(exporter.export_day, window),
                result_factory=partial(DayExportResult, day=window.day),
            )
            for window in windows
        ]
        summary.days = await self.scheduler.run(jobs)

        fatal = next((d for d in summary.days if d.status == JobStatus.FATAL), None)
        if fatal:
            summary.fatal_error = f"Export of {fatal.name} failed: {fatal.error}"

        await self._save_manifest(summary, key_field)
        summary.finished_at = datetime.now(timezone.utc)
        logger.info(f"Backup complete: {summary.exported_documents} documents in {len(summary.days)} days")
        return summary

    async def restore(self, summary: Optional[RunSummary] = None) -> RunSummary:
        """Recreate the target index from the saved schema and upload all files.

        A fatal index error stops the restore before any document is uploaded.

        Args:
            summary: Summary to fill in; a new one is created if None

        Returns:
            RunSummary with per-file upload results
        """
        summary = summary or self.new_summary()
        logger.info(
            f"Starting restore of {self.config.source.index_name} files into "
            f"{self.config.target.index_name} on {self.config.target.url}"
        )

        restorer = BulkRestorer(
            self.target_client,
            source_index=self.config.source.index_name,
            target_index=self.config.target.index_name,
            backup_dir=self.backup_dir,
            scheduler=self.scheduler,
            checksums=await self._load_checksums(),
        )

        try:
            summary.uploads = await restorer.restore(load_schema(self.schema_path))
        except MirrorError as e:
            summary.fatal_error = f"Restore aborted: {e}"
            logger.error(summary.fatal_error)
            summary.finished_at = datetime.now(timezone.utc)
            return summary

        fatal = next((u for u in summary.uploads if u.status == JobStatus.FATAL), None)
        if fatal:
            summary.fatal_error = f"Upload of {fatal.name} failed: {fatal.error}"

        summary.finished_at = datetime.now(timezone.utc)
        logger.info(f"Restore complete: {summary.uploaded_documents} documents in {len(summary.uploads)} files")
        return summary

    async def run(self) -> RunSummary:
        """Backup, then delete, recreate and fill the target index."""
        summary = self.new_summary()

        await self.backup(summary)
        if summary.fatal_error:
            logger.error("Backup failed fatally, skipping restore")
        else:
            await self.restore(summary)

        log_summary(summary)
        return summary

    # Private helper methods

    async def _save_manifest(self, summary: RunSummary, key_field: Optional[str]) -> None:
        files = {}
        for day in summary.days:
            for name in day.files:
                files[name] = compute_checksum(self.backup_dir / name)

        manifest = BackupManifest(
            backup_id=generate_backup_id(self.config.source.index_name),
            created_at=datetime.now(timezone.utc),
            search_mirror_version=self._get_version(),
            source_index=self.config.source.index_name,
            start_date=self.config.export.start_date,
            end_date=self.config.export.end_date,
            source_doc_count=summary.source_doc_count,
            key_field=key_field,
            files=files,
        )
        await save_manifest(manifest.model_dump(mode="json"), self.manifest_path)

    async def _load_checksums(self) -> Dict[str, str]:
        if not self.manifest_path.exists():
            return {}
        try:
            manifest = BackupManifest(**await load_manifest(self.manifest_path))
        except Exception as e:
            logger.warning(f"Failed to read manifest {self.manifest_path.name}: {e}")
            return {}
        return manifest.files

    def _get_version(self) -> str:
        """Get search-mirror version."""
        try:
            from .. import __version__
            return __version__
        except ImportError:
            return "unknown"


def log_summary(summary: RunSummary) -> None:
    """Log the totals of a run, then every failed day and file."""
    logger.info("RUN SUMMARY:")
    logger.info(f"  Source index: {summary.source_index} ({summary.source_doc_count} documents)")
    logger.info(f"  Schema captured: {summary.schema_captured}")
    logger.info(
        f"  Days exported: {len(summary.days) - len(summary.failed_days)}/{len(summary.days)}, "
        f"{summary.exported_documents} documents"
    )
    logger.info(
        f"  Files uploaded: {len(summary.uploads) - len(summary.failed_uploads)}/{len(summary.uploads)}, "
        f"{summary.uploaded_documents} documents to {summary.target_index}"
    )
    for day in summary.failed_days:
        logger.error(f"  Day {day.name} {day.status.value}: {day.error}")
    for upload in summary.failed_uploads:
        logger.error(f"  File {upload.name} {upload.status.value}: {upload.error}")
    if summary.fatal_error:
        logger.error(f"  Fatal: {summary.fatal_error}")
