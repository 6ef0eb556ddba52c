"""Name-based marker matching.

Markers are recognised by the name of their type, never by identity: an
event module may carry its own copy of a marker class (vendored, or imported
from a different installation) and identity checks would miss it. Marker
values are read by attribute name for the same reason.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Iterable, Tuple

from ..markers import markers_of

# Class attribute some messaging libraries use instead of ``__markers__``.
EVENT_TOPIC_ATTRIBUTE = "__event_topic__"


@dataclass(frozen=True)
class MarkerNames:
    """Type-name prefixes identifying each kind of marker."""

    event_topic: Tuple[str, ...] = ("EventTopic",)
    partition_key: Tuple[str, ...] = ("PartitionKey",)
    required: Tuple[str, ...] = ("Required",)
    max_length: Tuple[str, ...] = ("MaxLength", "StringLength", "MaxLen")
    range: Tuple[str, ...] = ("Range",)
    string_encoding: Tuple[str, ...] = ("StringEncoding",)
    deprecated: Tuple[str, ...] = ("Deprecated",)


def marker_name(marker: object) -> str:
    if isinstance(marker, type):
        return marker.__name__
    return type(marker).__name__


def find_marker(candidates: Iterable[object], prefixes: Tuple[str, ...]) -> Any:
    """Return the first candidate whose type name starts with one of `prefixes`."""
    for candidate in candidates:
        if candidate is None:
            continue
        if marker_name(candidate).startswith(prefixes):
            return candidate
    return None


def marker_value(marker: object, *names: str, default: Any = None) -> Any:
    """Read the first attribute in `names` that is set on `marker`."""
    for name in names:
        value = getattr(marker, name, None)
        if value is not None:
            return value
    return default


def class_markers(cls: type) -> Tuple[object, ...]:
    """Markers declared directly on `cls`, including a ``__event_topic__`` value."""
    declared = list(markers_of(cls))
    namespace = getattr(cls, "__dict__", {})
    topic = namespace.get(EVENT_TOPIC_ATTRIBUTE) if hasattr(namespace, "get") else None
    if topic is not None:
        declared.append(topic)
    return tuple(declared)


def module_markers(module_name: str) -> Tuple[object, ...]:
    """Markers assigned to a module's ``__markers__`` global."""
    module = sys.modules.get(module_name)
    if module is None:
        return ()
    return markers_of(module)


__all__ = [
    "EVENT_TOPIC_ATTRIBUTE",
    "MarkerNames",
    "class_markers",
    "find_marker",
    "marker_name",
    "marker_value",
    "module_markers",
]
