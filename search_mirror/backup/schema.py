"""Index schema transfer between search services."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from .._utils import logger
from ..errors import IndexCreateError
from ..service import SearchServiceClient


async def fetch_schema(client: SearchServiceClient, index_name: str) -> str:
    """Fetch the raw index definition so it can be persisted byte-for-byte.

    Raises:
        SchemaFetchError: On non-2xx response or transport failure
    """
    logger.info(f"Fetching schema of index {index_name}")
    raw_schema = await client.get_index(index_name)
    logger.debug(f"Schema of {index_name}: {len(raw_schema)} characters")
    return raw_schema


def _parse_schema(raw_schema: str) -> Dict[str, Any]:
    if not raw_schema or not raw_schema.strip():
        raise IndexCreateError("No schema was captured from the source index")
    try:
        schema = json.loads(raw_schema)
    except json.JSONDecodeError as e:
        raise IndexCreateError(f"Captured schema is not valid JSON: {e}") from e
    if not isinstance(schema, dict) or "name" not in schema:
        raise IndexCreateError("Captured schema has no top-level 'name' field")
    return schema


def rename_schema_index(raw_schema: str, new_name: str) -> str:
    """Point an index definition at a new index name.

    Members preceding "name" (the @odata wrapper fields of a GET response) are
    dropped; everything from "name" onwards is kept in its original order.
    """
    schema = _parse_schema(raw_schema)

    renamed: Dict[str, Any] = {}
    seen_name = False
    for key, value in schema.items():
        if key == "name":
            seen_name = True
            renamed[key] = new_name
        elif seen_name:
            renamed[key] = value

    return json.dumps(renamed)


def find_key_field(raw_schema: str) -> Optional[str]:
    """Name of the index's key field, or None if it cannot be determined."""
    try:
        schema = json.loads(raw_schema)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(schema, dict):
        return None
    for field in schema.get("fields", []):
        if field.get("key"):
            return field.get("name")
    return None


async def create_index(client: SearchServiceClient, raw_schema: str) -> None:
    """Create the target index from an already renamed definition.

    Raises:
        IndexCreateError: On any non-2xx response
    """
    name = _parse_schema(raw_schema)["name"]
    logger.info(f"Creating index {name} on {client.service.url}")
    await client.create_index(raw_schema)
    logger.info(f"Index created: {name}")


async def delete_index_if_exists(client: SearchServiceClient, index_name: str) -> bool:
    """Delete an index; a missing index is not an error.

    Returns:
        True if an index was deleted, False if none existed

    Raises:
        IndexDeleteError: On authentication, network or other failures
    """
    logger.info(f"Deleting index {index_name} on {client.service.url}, if it exists")
    deleted = await client.delete_index(index_name)
    if deleted:
        logger.info(f"Deleted index: {index_name}")
    else:
        logger.info(f"Index {index_name} did not exist")
    return deleted


def save_schema(raw_schema: str, path: Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(raw_schema)
    logger.info(f"Schema saved: {path}")


def load_schema(path: Path) -> str:
    """Read a saved schema; a missing file yields an empty schema."""
    if not path.exists():
        logger.warning(f"No schema file at {path}")
        return ""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()
