"""Utility functions for backup/restore operations."""

import hashlib
import json
import os
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from .._utils import format_day, logger
from ..errors import FileWriteError


def export_file_name(index_name: str, day: date, page_index: int) -> str:
    """Name of the export file holding one page of one day.

    Returns:
        File name in format: {index}-{YYYY-MM-DD}-{page}.json
    """
    return f"{index_name}-{format_day(day)}-{page_index}.json"


def schema_file_name(index_name: str) -> str:
    return f"{index_name}.schema"


def manifest_file_name(index_name: str) -> str:
    # No .json suffix so the restore glob never picks it up
    return f"{index_name}.manifest"


def list_export_files(backup_dir: Path, index_name: str) -> List[Path]:
    """All files matching {index_name}*.json, sorted by name."""
    return sorted(p for p in backup_dir.glob(f"{index_name}*.json") if p.is_file())


def write_json_atomic(path: Path, payload: Any) -> int:
    """Serialize payload and move it into place in one step.

    The content is written to a temporary file in the same directory and then
    renamed over path, so a partially written file is never visible.

    Args:
        path: Final file path
        payload: JSON-serializable object

    Returns:
        Number of bytes written
    """
    data = json.dumps(payload, ensure_ascii=False).encode("utf-8")

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise FileWriteError(f"Failed to write {path}: {e}") from e

    return len(data)


def compute_checksum(file_path: Path) -> str:
    """Compute SHA-256 checksum of file.

    Args:
        file_path: Path to file

    Returns:
        SHA-256 checksum as hex string with 'sha256:' prefix
    """
    sha256 = hashlib.sha256()

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)

    return f"sha256:{sha256.hexdigest()}"


def verify_checksum(file_path: Path, expected_checksum: str) -> bool:
    """Verify file checksum.

    Args:
        file_path: Path to file
        expected_checksum: Expected checksum (with 'sha256:' prefix)

    Returns:
        True if checksum matches, False otherwise
    """
    return compute_checksum(file_path) == expected_checksum


def generate_backup_id(index_name: str) -> str:
    """Generate backup ID with timestamp.

    Returns:
        Backup ID in format: {index}_YYYY-MM-DDTHH-MM-SSZ
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")
    return f"{index_name}_{timestamp}"


async def save_manifest(manifest: Dict[str, Any], output_path: Path) -> None:
    """Save manifest JSON to file.

    Args:
        manifest: Manifest dictionary
        output_path: Output file path
    """
    with open(output_path, "w") as f:
        json.dump(manifest, f, indent=2, default=str)

    logger.debug(f"Manifest saved: {output_path}")


async def load_manifest(manifest_path: Path) -> Dict[str, Any]:
    """Load manifest JSON from file.

    Args:
        manifest_path: Manifest file path

    Returns:
        Manifest dictionary
    """
    with open(manifest_path, "r") as f:
        manifest = json.load(f)

    logger.debug(f"Manifest loaded: {manifest_path}")
    return manifest
