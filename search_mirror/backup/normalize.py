"""Field-value normalization applied to documents before they are written."""

from typing import Any, Dict

# Members of a geography point as serialized by the .NET SDK
GEOGRAPHY_POINT_FIELDS = {"Latitude", "Longitude", "IsEmpty", "Z", "M", "CoordinateSystem"}

SEARCH_ANNOTATION_PREFIX = "@search."


def is_geography_point(value: Any) -> bool:
    """True for a {Latitude, Longitude, ...} geography point object."""
    return (
        isinstance(value, dict)
        and "Latitude" in value
        and "Longitude" in value
        and set(value) <= GEOGRAPHY_POINT_FIELDS
    )


def to_geojson_point(value: Dict[str, Any]) -> Dict[str, Any]:
    """GeoJSON coordinates are ordered [longitude, latitude]."""
    return {"type": "Point", "coordinates": [value["Longitude"], value["Latitude"]]}


def _normalize_value(value: Any) -> Any:
    if is_geography_point(value):
        return to_geojson_point(value)
    if isinstance(value, dict):
        return {k: _normalize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize_value(v) for v in value]
    return value


def normalize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Return an upload-ready copy of a search result document.

    Search annotations are dropped and every geography point, at any depth,
    is rewritten as a GeoJSON Point.
    """
    return {
        key: _normalize_value(value)
        for key, value in document.items()
        if not key.startswith(SEARCH_ANNOTATION_PREFIX)
    }
