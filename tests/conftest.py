"""Global pytest configuration and fixtures."""

import pytest
import sys
import tempfile
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tests.utils import FakeSearchService, make_document


@pytest.fixture
def temp_backup_dir():
    """Create temporary backup directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def source_documents():
    """Three documents on 2024-01-01, none on 2024-01-02, one on 2024-01-03."""
    return [
        make_document("a", "2024-01-01T01:00:00Z", location={
            "Latitude": 47.6,
            "Longitude": -122.3,
            "IsEmpty": False,
            "Z": None,
            "M": None,
            "CoordinateSystem": {"EpsgId": 4326, "Id": "4326", "Name": "WGS84"},
        }),
        make_document("b", "2024-01-01T02:00:00Z"),
        make_document("c", "2024-01-01T23:59:59Z"),
        make_document("d", "2024-01-03T00:00:00Z"),
    ]


@pytest.fixture
def fake_service(source_documents):
    """Fake search service holding index 'idx' with the source documents."""
    service = FakeSearchService()
    service.add_index("idx", source_documents)
    return service
