"""Core data models shared across eventdocs components."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from .naming import safe_file_name


@dataclass(frozen=True)
class PayloadSizeResult:
    """Estimated serialized size; inaccurate means representative, not wrong."""

    size_bytes: int
    is_accurate: bool
    warning: Optional[str] = None


@dataclass(frozen=True)
class PartitionKeyMetadata:
    """A property contributing to the message routing key."""

    name: str
    type_name: str
    description: str
    order: int
    is_from_parameter: bool


@dataclass(frozen=True)
class EventPropertyMetadata:
    """Metadata for one public property of an event type."""

    name: str
    type_name: str
    property_type: Any = field(compare=False, repr=False)
    is_required: bool
    is_complex_type: bool
    is_partition_key: bool
    partition_key_order: Optional[int]
    description: str
    estimated_size_bytes: int
    is_accurate: bool
    size_warning: Optional[str] = None


@dataclass(frozen=True)
class EventMetadata:
    """Everything discovered about one event type."""

    event_name: str
    full_type_name: str
    namespace: str
    topic_name: str
    domain: str
    version: str
    is_internal: bool
    properties: Tuple[EventPropertyMetadata, ...] = ()
    partition_keys: Tuple[PartitionKeyMetadata, ...] = ()
    obsolete_message: Optional[str] = None
    total_size: PayloadSizeResult = field(default_factory=lambda: PayloadSizeResult(0, True))
    source_file: Optional[str] = None
    source_line: Optional[int] = None
    event_type: Any = field(default=None, compare=False, repr=False)

    @property
    def visibility(self) -> str:
        return "internal" if self.is_internal else "public"

    @property
    def file_name(self) -> str:
        return f"{safe_file_name(self.full_type_name)}.md"

    def detached(self) -> "EventMetadata":
        """Copy without references to the introspected types."""
        return replace(
            self,
            event_type=None,
            properties=tuple(replace(prop, property_type=None) for prop in self.properties),
        )


@dataclass(frozen=True)
class RenderedDocument:
    """A fully rendered document, ready to be written under the output directory."""

    file_name: str
    relative_path: str
    content: str


@dataclass
class SidebarItem:
    """Navigation tree node; group nodes carry `collapsed` and child `items`."""

    text: str
    link: Optional[str] = None
    collapsed: Optional[bool] = None
    items: List["SidebarItem"] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        return self.collapsed is not None or bool(self.items)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"text": self.text, "link": self.link}
        if self.is_group:
            payload["collapsed"] = bool(self.collapsed)
            payload["items"] = [item.to_dict() for item in self.items]
        return payload


@dataclass(frozen=True, order=True)
class SchemaSummary:
    """Names of a documented schema type, detached from the type object itself."""

    clean_name: str
    name: str
    namespace: str

    @property
    def file_name(self) -> str:
        return f"{safe_file_name(self.clean_name)}.md"
