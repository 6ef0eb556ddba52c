"""Type classification and name-based marker matching used by event discovery."""

from .matching import MarkerNames, class_markers, find_marker, marker_value
from .types import (
    PropertyInfo,
    clean_type_name,
    collect_complex_types,
    collect_nested_complex_types,
    friendly_type_name,
    is_collection,
    is_complex,
    is_scalar,
    type_properties,
)

__all__ = [
    "MarkerNames",
    "PropertyInfo",
    "class_markers",
    "clean_type_name",
    "collect_complex_types",
    "collect_nested_complex_types",
    "find_marker",
    "friendly_type_name",
    "is_collection",
    "is_complex",
    "is_scalar",
    "marker_value",
    "type_properties",
]
