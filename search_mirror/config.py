"""Configuration management for search-mirror."""

import json
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional, Union

from ._utils import parse_day

DEFAULT_API_VERSION = "2023-11-01"
MAX_PAGE_SIZE = 1000  # hard ceiling of the search API


@dataclass(frozen=True)
class SearchServiceConfig:
    """Connection details for one search service and the index used on it."""
    service_name: str = ""
    api_key: str = ""
    index_name: str = ""
    endpoint: Optional[str] = None  # overrides https://{service_name}.search.windows.net
    api_version: str = DEFAULT_API_VERSION

    @classmethod
    def from_env(cls, prefix: str) -> 'SearchServiceConfig':
        """Create config from environment variables, e.g. SOURCE_INDEX_NAME."""
        return cls(
            service_name=os.getenv(f"{prefix}_SEARCH_SERVICE_NAME", ""),
            api_key=os.getenv(f"{prefix}_ADMIN_KEY", ""),
            index_name=os.getenv(f"{prefix}_INDEX_NAME", ""),
            endpoint=os.getenv(f"{prefix}_ENDPOINT") or None,
            api_version=os.getenv("SEARCH_API_VERSION", DEFAULT_API_VERSION)
        )

    @property
    def url(self) -> str:
        if self.endpoint:
            return self.endpoint.rstrip("/")
        return f"https://{self.service_name}.search.windows.net"

    def __post_init__(self):
        """Validate configuration."""
        if not self.service_name and not self.endpoint:
            raise ValueError("either service_name or endpoint must be set")
        if not self.index_name:
            raise ValueError("index_name must be set")


@dataclass(frozen=True)
class ExportConfig:
    """Date range and batching of the export.

    start_date and end_date default to today, which is an empty range: an
    explicit range is required to export anything.
    """
    start_date: date = field(default_factory=lambda: parse_day(None))
    end_date: date = field(default_factory=lambda: parse_day(None))
    max_batch_size: int = 500
    parallelization_count: int = 10
    timestamp_field: str = "metadata_storage_last_modified"
    max_skip: int = 100_000
    wave_barrier: bool = False

    @classmethod
    def from_env(cls) -> 'ExportConfig':
        """Create config from environment variables."""
        return cls(
            start_date=parse_day(os.getenv("EXPORT_START_DATE")),
            end_date=parse_day(os.getenv("EXPORT_END_DATE")),
            max_batch_size=int(os.getenv("EXPORT_MAX_BATCH_SIZE", "500")),
            parallelization_count=int(os.getenv("EXPORT_PARALLELIZATION_COUNT", "10")),
            timestamp_field=os.getenv("EXPORT_TIMESTAMP_FIELD", "metadata_storage_last_modified"),
            max_skip=int(os.getenv("EXPORT_MAX_SKIP", "100000")),
            wave_barrier=os.getenv("EXPORT_WAVE_BARRIER", "false").lower() == "true"
        )

    def __post_init__(self):
        """Validate configuration."""
        if not 0 < self.max_batch_size <= MAX_PAGE_SIZE:
            raise ValueError(f"max_batch_size must be between 1 and {MAX_PAGE_SIZE}, got {self.max_batch_size}")
        if self.parallelization_count <= 0:
            raise ValueError(f"parallelization_count must be positive, got {self.parallelization_count}")
        if self.max_skip < 0:
            raise ValueError(f"max_skip must be non-negative, got {self.max_skip}")
        if self.end_date < self.start_date:
            raise ValueError(f"end_date ({self.end_date}) is before start_date ({self.start_date})")
        if not self.timestamp_field:
            raise ValueError("timestamp_field must be set")


@dataclass(frozen=True)
class RequestConfig:
    """Per-request timeout and retry policy for the search service."""
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0

    @classmethod
    def from_env(cls) -> 'RequestConfig':
        """Create config from environment variables."""
        return cls(
            timeout=float(os.getenv("SEARCH_REQUEST_TIMEOUT", "30.0")),
            retry_attempts=int(os.getenv("SEARCH_RETRY_ATTEMPTS", "3")),
            retry_min_wait=float(os.getenv("SEARCH_RETRY_MIN_WAIT", "1.0")),
            retry_max_wait=float(os.getenv("SEARCH_RETRY_MAX_WAIT", "10.0"))
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.retry_attempts <= 0:
            raise ValueError(f"retry_attempts must be positive, got {self.retry_attempts}")
        if self.retry_min_wait < 0 or self.retry_max_wait < self.retry_min_wait:
            raise ValueError(
                f"invalid retry wait bounds: min={self.retry_min_wait}, max={self.retry_max_wait}"
            )


@dataclass(frozen=True)
class RunConfig:
    """Everything one backup/restore run needs."""
    source: SearchServiceConfig
    target: SearchServiceConfig
    backup_dir: str = "./backups"
    export: ExportConfig = field(default_factory=ExportConfig)
    request: RequestConfig = field(default_factory=RequestConfig)

    @classmethod
    def from_env(cls) -> 'RunConfig':
        """Create complete config from environment variables."""
        return cls(
            source=SearchServiceConfig.from_env("SOURCE"),
            target=SearchServiceConfig.from_env("TARGET"),
            backup_dir=os.getenv("BACKUP_DIRECTORY", "./backups"),
            export=ExportConfig.from_env(),
            request=RequestConfig.from_env()
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'RunConfig':
        """Create config from an appsettings.json style file.

        Keys missing from the file fall back to the environment defaults.
        """
        with open(path, "r", encoding="utf-8") as f:
            settings = json.load(f)

        env_export = ExportConfig.from_env()
        api_version = settings.get("ApiVersion", DEFAULT_API_VERSION)

        return cls(
            source=SearchServiceConfig(
                service_name=settings.get("SourceSearchServiceName", ""),
                api_key=settings.get("SourceAdminKey", ""),
                index_name=settings.get("SourceIndexName", ""),
                endpoint=settings.get("SourceEndpoint"),
                api_version=api_version
            ),
            target=SearchServiceConfig(
                service_name=settings.get("TargetSearchServiceName", ""),
                api_key=settings.get("TargetAdminKey", ""),
                index_name=settings.get("TargetIndexName", ""),
                endpoint=settings.get("TargetEndpoint"),
                api_version=api_version
            ),
            backup_dir=settings.get("BackupDirectory", "./backups"),
            export=ExportConfig(
                start_date=parse_day(settings.get("StartDate") or env_export.start_date),
                end_date=parse_day(settings.get("EndDate") or env_export.end_date),
                max_batch_size=int(settings.get("MaxBatchSize", env_export.max_batch_size)),
                parallelization_count=int(
                    settings.get("ParallelizationCount", env_export.parallelization_count)
                ),
                timestamp_field=settings.get("TimestampField", env_export.timestamp_field),
                max_skip=env_export.max_skip,
                wave_barrier=env_export.wave_barrier
            ),
            request=RequestConfig.from_env()
        )

    def to_dict(self) -> dict:
        """Loggable view of the configuration with API keys masked."""
        return {
            "source": {"url": self.source.url, "index": self.source.index_name},
            "target": {"url": self.target.url, "index": self.target.index_name},
            "backup_dir": self.backup_dir,
            "start_date": self.export.start_date.isoformat(),
            "end_date": self.export.end_date.isoformat(),
            "max_batch_size": self.export.max_batch_size,
            "parallelization_count": self.export.parallelization_count,
            "timestamp_field": self.export.timestamp_field,
        }
