"""Recreate the target index and replay export files into it."""

from functools import partial
from pathlib import Path
from typing import Dict, List, Optional

from .._utils import logger
from ..errors import MirrorError
from ..service import SearchServiceClient
from .models import JobStatus, UploadResult
from .scheduler import Job, WaveScheduler
from .schema import create_index, delete_index_if_exists, rename_schema_index
from .utils import list_export_files, verify_checksum


class BulkRestorer:
    """Drop and recreate the target index, then upload every export file."""

    def __init__(
        self,
        client: SearchServiceClient,
        source_index: str,
        target_index: str,
        backup_dir: Path,
        scheduler: WaveScheduler,
        checksums: Optional[Dict[str, str]] = None,
    ):
        """Initialize restorer.

        Args:
            client: Client for the target search service
            source_index: Index name the export files were written under
            target_index: Index to recreate and fill
            backup_dir: Directory holding the export files
            scheduler: Scheduler bounding concurrent uploads
            checksums: Optional file name to checksum map from the manifest
        """
        self.client = client
        self.source_index = source_index
        self.target_index = target_index
        self.backup_dir = backup_dir
        self.scheduler = scheduler
        self.checksums = checksums or {}

    def find_export_files(self) -> List[Path]:
        # Files are matched by the source index name, whatever the target is
        return list_export_files(self.backup_dir, self.source_index)

    async def recreate_index(self, raw_schema: str) -> None:
        """Delete the target index if present and create it from raw_schema.

        The schema is validated before anything is deleted.

        Raises:
            IndexCreateError: Schema unusable or creation rejected
            IndexDeleteError: Existing index could not be deleted
        """
        renamed = rename_schema_index(raw_schema, self.target_index)
        await delete_index_if_exists(self.client, self.target_index)
        await create_index(self.client, renamed)

    async def upload_file(self, path: Path) -> UploadResult:
        """Upload one export file verbatim."""
        result = UploadResult(name=path.name, file=path.name)

        try:
            payload = path.read_bytes()
        except OSError as e:
            result.status = JobStatus.FAILED
            result.error = f"Could not read {path}: {e}"
            logger.error(result.error)
            return result

        expected = self.checksums.get(path.name)
        if expected and not verify_checksum(path, expected):
            logger.warning(f"Checksum mismatch for {path.name}, uploading anyway")

        logger.info(f"Uploading documents from {path.name}")
        try:
            result.documents = await self.client.upload_documents(self.target_index, payload)
        except MirrorError as e:
            # A missing target index fails every remaining upload the same way
            fatal = e.fatal or e.status_code == 404
            result.status = JobStatus.FATAL if fatal else JobStatus.FAILED
            result.error = str(e)
            logger.error(f"Upload of {path.name} failed: {e}")

        return result

    async def upload_all(self) -> List[UploadResult]:
        """Upload every export file, bounded by the scheduler."""
        files = self.find_export_files()
        if self.source_index != self.target_index:
            logger.info(
                f"Restoring files named after {self.source_index} into {self.target_index}"
            )
        logger.info(f"Uploading {len(files)} files to {self.target_index}")

        jobs = [
            Job(
                name=path.name,
                run=partial(self.upload_file, path),
                result_factory=partial(UploadResult, file=path.name),
            )
            for path in files
        ]
        return await self.scheduler.run(jobs)

    async def restore(self, raw_schema: str) -> List[UploadResult]:
        """Recreate the target index, then upload all files.

        Uploads only start once the index was created successfully.
        """
        await self.recreate_index(raw_schema)
        return await self.upload_all()
