"""Tests for configuration management."""

import json
import os
from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from search_mirror.config import (
    DEFAULT_API_VERSION,
    ExportConfig,
    RequestConfig,
    RunConfig,
    SearchServiceConfig,
)


class TestSearchServiceConfig:
    """Test search service configuration."""

    def test_url_from_service_name(self):
        config = SearchServiceConfig(service_name="contoso", api_key="k", index_name="docs")
        assert config.url == "https://contoso.search.windows.net"
        assert config.api_version == DEFAULT_API_VERSION

    def test_endpoint_overrides_url(self):
        config = SearchServiceConfig(endpoint="http://localhost:7700/", index_name="docs")
        assert config.url == "http://localhost:7700"

    def test_from_env(self):
        """Test creating from environment variables."""
        with patch.dict(os.environ, {
            "SOURCE_SEARCH_SERVICE_NAME": "contoso",
            "SOURCE_ADMIN_KEY": "secret",
            "SOURCE_INDEX_NAME": "docs",
            "SEARCH_API_VERSION": "2024-07-01"
        }, clear=True):
            config = SearchServiceConfig.from_env("SOURCE")
            assert config.service_name == "contoso"
            assert config.api_key == "secret"
            assert config.index_name == "docs"
            assert config.endpoint is None
            assert config.api_version == "2024-07-01"

    def test_validation(self):
        """Test validation errors."""
        with pytest.raises(ValueError, match="service_name or endpoint"):
            SearchServiceConfig(index_name="docs")

        with pytest.raises(ValueError, match="index_name must be set"):
            SearchServiceConfig(service_name="contoso")


class TestExportConfig:
    """Test export configuration."""

    def test_defaults(self):
        """Dates default to today, which exports nothing."""
        config = ExportConfig()
        today = datetime.now(timezone.utc).date()
        assert config.start_date == today
        assert config.end_date == today
        assert config.max_batch_size == 500
        assert config.parallelization_count == 10
        assert config.timestamp_field == "metadata_storage_last_modified"
        assert config.max_skip == 100_000
        assert config.wave_barrier is False

    def test_from_env(self):
        """Test creating from environment variables."""
        with patch.dict(os.environ, {
            "EXPORT_START_DATE": "2024-01-01",
            "EXPORT_END_DATE": "2024-02-01",
            "EXPORT_MAX_BATCH_SIZE": "1000",
            "EXPORT_PARALLELIZATION_COUNT": "4",
            "EXPORT_TIMESTAMP_FIELD": "modified",
            "EXPORT_WAVE_BARRIER": "true"
        }, clear=True):
            config = ExportConfig.from_env()
            assert config.start_date == date(2024, 1, 1)
            assert config.end_date == date(2024, 2, 1)
            assert config.max_batch_size == 1000
            assert config.parallelization_count == 4
            assert config.timestamp_field == "modified"
            assert config.wave_barrier is True

    def test_validation(self):
        """Test validation errors."""
        with pytest.raises(ValueError, match="max_batch_size must be between 1 and 1000"):
            ExportConfig(max_batch_size=1001)

        with pytest.raises(ValueError, match="max_batch_size must be between"):
            ExportConfig(max_batch_size=0)

        with pytest.raises(ValueError, match="parallelization_count must be positive"):
            ExportConfig(parallelization_count=0)

        with pytest.raises(ValueError, match="end_date .* is before start_date"):
            ExportConfig(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))

        with pytest.raises(ValueError, match="timestamp_field must be set"):
            ExportConfig(timestamp_field="")


class TestRequestConfig:
    """Test request configuration."""

    def test_defaults(self):
        config = RequestConfig()
        assert config.timeout == 30.0
        assert config.retry_attempts == 3

    def test_validation(self):
        with pytest.raises(ValueError, match="timeout must be positive"):
            RequestConfig(timeout=0)

        with pytest.raises(ValueError, match="retry_attempts must be positive"):
            RequestConfig(retry_attempts=0)

        with pytest.raises(ValueError, match="invalid retry wait bounds"):
            RequestConfig(retry_min_wait=5, retry_max_wait=1)


class TestRunConfig:
    """Test complete run configuration."""

    def test_from_env(self):
        with patch.dict(os.environ, {
            "SOURCE_SEARCH_SERVICE_NAME": "src",
            "SOURCE_INDEX_NAME": "docs",
            "TARGET_ENDPOINT": "http://localhost:7700",
            "TARGET_INDEX_NAME": "docs-copy",
            "BACKUP_DIRECTORY": "/tmp/backups",
            "SEARCH_RETRY_ATTEMPTS": "5"
        }, clear=True):
            config = RunConfig.from_env()
            assert config.source.url == "https://src.search.windows.net"
            assert config.target.url == "http://localhost:7700"
            assert config.target.index_name == "docs-copy"
            assert config.backup_dir == "/tmp/backups"
            assert config.request.retry_attempts == 5

    def test_from_env_missing_source_fails(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError):
                RunConfig.from_env()

    def test_from_file(self, tmp_path):
        """appsettings.json keys map onto the run config."""
        settings = {
            "SourceSearchServiceName": "src",
            "SourceAdminKey": "src-key",
            "SourceIndexName": "docs",
            "TargetSearchServiceName": "dst",
            "TargetAdminKey": "dst-key",
            "TargetIndexName": "docs-copy",
            "BackupDirectory": str(tmp_path / "backups"),
            "StartDate": "2024-01-01",
            "EndDate": "2024-01-15T00:00:00Z",
            "MaxBatchSize": 250,
            "ParallelizationCount": 5
        }
        path = tmp_path / "appsettings.json"
        path.write_text(json.dumps(settings))

        with patch.dict(os.environ, {}, clear=True):
            config = RunConfig.from_file(path)

        assert config.source.api_key == "src-key"
        assert config.target.url == "https://dst.search.windows.net"
        assert config.backup_dir == str(tmp_path / "backups")
        assert config.export.start_date == date(2024, 1, 1)
        assert config.export.end_date == date(2024, 1, 15)
        assert config.export.max_batch_size == 250
        assert config.export.parallelization_count == 5
        assert config.export.timestamp_field == "metadata_storage_last_modified"

    def test_from_file_invalid_batch_size(self, tmp_path):
        path = tmp_path / "appsettings.json"
        path.write_text(json.dumps({
            "SourceSearchServiceName": "src",
            "SourceIndexName": "docs",
            "TargetSearchServiceName": "dst",
            "TargetIndexName": "docs-copy",
            "MaxBatchSize": 5000
        }))

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="max_batch_size"):
                RunConfig.from_file(path)

    def test_to_dict_masks_keys(self):
        config = RunConfig(
            source=SearchServiceConfig(service_name="src", api_key="src-key", index_name="docs"),
            target=SearchServiceConfig(service_name="dst", api_key="dst-key", index_name="docs-copy"),
            export=ExportConfig(start_date=date(2024, 1, 1), end_date=date(2024, 1, 2)),
        )
        flat = json.dumps(config.to_dict())
        assert "src-key" not in flat
        assert "dst-key" not in flat
        assert config.to_dict()["start_date"] == "2024-01-01"
