"""Day-windowed, paginated export of index documents to JSON files."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .._utils import logger
from ..config import ExportConfig
from ..errors import MirrorError, QueryError
from ..service import SearchServiceClient
from .models import DayExportResult, ExportWindow, JobStatus
from .normalize import normalize_document
from .utils import export_file_name, write_json_atomic


class PaginatedExporter:
    """Export one index to numbered files, one calendar day per call.

    Pages of `max_batch_size` documents are requested in ascending timestamp
    order and each non-empty page becomes one file:
    {index}-{YYYY-MM-DD}-{page}.json holding {"value": [...]}.
    """

    def __init__(
        self,
        client: SearchServiceClient,
        index_name: str,
        backup_dir: Path,
        export_config: ExportConfig,
        key_field: Optional[str] = None,
    ):
        """Initialize exporter.

        Args:
            client: Client for the source search service
            index_name: Source index name, also the file name prefix
            backup_dir: Directory receiving the export files
            export_config: Page size, timestamp field and result window
            key_field: Key field of the index, used to detect duplicates
        """
        self.client = client
        self.index_name = index_name
        self.backup_dir = backup_dir
        self.config = export_config
        self.key_field = key_field

    def _search_body(self, window: ExportWindow, skip: int, include_count: bool) -> Dict[str, Any]:
        body = {
            "search": "*",
            "searchMode": "all",
            "filter": window.filter_expression(self.config.timestamp_field),
            "orderby": f"{self.config.timestamp_field} asc",
            "top": self.config.max_batch_size,
            "skip": skip,
        }
        if include_count:
            body["count"] = True
        return body

    def _count_duplicates(self, documents: List[Dict[str, Any]], seen_keys: Set[Any]) -> int:
        if not self.key_field:
            return 0
        duplicates = 0
        for doc in documents:
            key = doc.get(self.key_field)
            if key is None:
                continue
            if key in seen_keys:
                duplicates += 1
            seen_keys.add(key)
        return duplicates

    async def export_day(self, window: ExportWindow) -> DayExportResult:
        """Export every document of one day.

        Files written before a failure stay on disk; the result records how
        far the export got.
        """
        result = DayExportResult(name=window.label, day=window.day)
        seen_keys: Set[Any] = set()
        page_size = self.config.max_batch_size
        skip = 0

        logger.info(f"Exporting {self.index_name} documents for {window.label}")

        try:
            response = await self.client.search(self.index_name, self._search_body(window, skip, True))
            result.expected_documents = response.get("@odata.count")
            documents = response.get("value", [])

            while documents:
                normalized = [normalize_document(doc) for doc in documents]
                result.duplicate_keys += self._count_duplicates(normalized, seen_keys)

                path = self.backup_dir / export_file_name(self.index_name, window.day, result.pages)
                write_json_atomic(path, {"value": normalized})

                result.pages += 1
                result.documents += len(normalized)
                result.files.append(path.name)
                logger.debug(f"Wrote {path.name}: {len(normalized)} documents")

                if len(documents) < page_size:
                    # Short page, the day is exhausted
                    break
                skip += page_size
                if skip > self.config.max_skip:
                    raise QueryError(
                        f"Day {window.label} holds more documents than the result window "
                        f"allows (skip {skip} > {self.config.max_skip})"
                    )
                response = await self.client.search(self.index_name, self._search_body(window, skip, False))
                documents = response.get("value", [])

        except MirrorError as e:
            result.status = JobStatus.FATAL if e.fatal else JobStatus.FAILED
            result.error = str(e)
            logger.error(f"Export of {window.label} stopped after {result.pages} files: {e}")
            return result
        except (TypeError, ValueError) as e:
            result.status = JobStatus.FAILED
            result.error = f"Could not serialize documents: {e}"
            logger.error(f"Export of {window.label} stopped after {result.pages} files: {e}")
            return result

        if result.expected_documents is not None and result.expected_documents != result.documents:
            logger.warning(
                f"{window.label}: exported {result.documents} documents, "
                f"service reported {result.expected_documents}"
            )
        if result.duplicate_keys:
            logger.warning(f"{window.label}: {result.duplicate_keys} documents appeared on more than one page")

        logger.info(f"Exported {result.documents} documents for {window.label} in {result.pages} files")
        return result
