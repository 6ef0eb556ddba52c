"""Declarative markers for authors of event modules.

Discovery matches markers by class name and reads their attributes by
duck typing, so event modules may use these classes or ship their own
look-alikes (for example a messaging library's ``EventTopic``).

Usage::

    @EventTopic("payments", domain="Billing")
    @dataclass(frozen=True)
    class PaymentReceived:
        tenant_id: Annotated[UUID, PartitionKey(order=0)]
        amount: Decimal
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple, TypeVar

MARKERS_ATTRIBUTE = "__markers__"

T = TypeVar("T")


def attach_marker(target: T, marker: object) -> T:
    """Append `marker` to the markers declared directly on `target`."""
    existing = getattr(target, "__dict__", {}).get(MARKERS_ATTRIBUTE, ())
    setattr(target, MARKERS_ATTRIBUTE, (*existing, marker))
    return target


def markers_of(target: Any) -> Tuple[object, ...]:
    """Return markers declared on `target` itself (inherited markers are ignored)."""
    namespace = getattr(target, "__dict__", None)
    if namespace is None:
        return ()
    try:
        declared = namespace.get(MARKERS_ATTRIBUTE, ())
    except AttributeError:
        return ()
    if isinstance(declared, (list, tuple)):
        return tuple(declared)
    return (declared,)


class _ClassMarker:
    """Mixin letting a marker instance be used as a class decorator."""

    def __call__(self, cls: T) -> T:
        return attach_marker(cls, self)


@dataclass(frozen=True)
class EventTopic(_ClassMarker):
    """Identifies a class as a routable event and carries its topic metadata."""

    topic: str = ""
    domain: Optional[str] = None
    internal: bool = False
    version: str = "v1"
    pluralize: bool = False


def event_topic(
    topic: str = "",
    *,
    domain: Optional[str] = None,
    internal: bool = False,
    version: str = "v1",
    pluralize: bool = False,
) -> EventTopic:
    return EventTopic(topic=topic, domain=domain, internal=internal, version=version, pluralize=pluralize)


@dataclass(frozen=True)
class PartitionKey:
    """Marks a field or constructor parameter as part of the routing key."""

    order: int = 0


@dataclass(frozen=True)
class Required:
    """Marks a field as required regardless of its nullability."""


@dataclass(frozen=True)
class MaxLength:
    length: int


@dataclass(frozen=True)
class StringLength:
    maximum_length: int
    minimum_length: int = 0


@dataclass(frozen=True)
class Range:
    """Bounds a numeric value or, on collections, the number of items."""

    minimum: Any = None
    maximum: Any = None


@dataclass(frozen=True)
class StringEncoding(_ClassMarker):
    """Bytes per character used when sizing strings (property > class > module)."""

    bytes_per_char: int = 1


@dataclass(frozen=True)
class Deprecated(_ClassMarker):
    message: str = ""


@dataclass(frozen=True)
class DefaultDomain:
    """Module-level fallback domain: ``__default_domain__ = DefaultDomain("Billing")``."""

    domain: str = ""


__all__ = [
    "DefaultDomain",
    "Deprecated",
    "EventTopic",
    "MARKERS_ATTRIBUTE",
    "MaxLength",
    "PartitionKey",
    "Range",
    "Required",
    "StringEncoding",
    "StringLength",
    "attach_marker",
    "event_topic",
    "markers_of",
]
