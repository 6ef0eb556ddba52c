"""Navigation manifest (sidebar) generation for the generated documents."""

from __future__ import annotations

import json
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple

from .config import DEFAULT_BOUNDARY_SEGMENTS
from .logging import get_logger
from .models import EventMetadata, SchemaSummary, SidebarItem
from .naming import capitalize_first, display_name, safe_file_name

UNKNOWN = "Unknown"
DOMAIN_EVENTS_SECTION = "Domain Events"
SCHEMAS_TEXT = "Schemas"


class SidebarGenerator:
    """Groups events by subdomain and section, followed by a "Schemas" group.

    The subdomain is the second segment of an event's module path and the
    section is whatever lies between it and the first boundary segment, so
    ``shop.billing.payments.contracts`` groups under Billing / Payments.
    The output is fully determined by its input.
    """

    def __init__(self, boundary_segments: Sequence[str] = DEFAULT_BOUNDARY_SEGMENTS) -> None:
        self.boundary_segments = tuple(boundary_segments)
        self.logger = get_logger("navigation")

    def parse_namespace_hierarchy(self, namespace: str) -> Tuple[str, str]:
        """Return ``(subdomain, section)``; the section may be empty."""
        parts = [part for part in namespace.split(".") if part]
        normalised = [_normalise(part) for part in parts]
        end_index = len(parts)
        for segment in self.boundary_segments:
            key = _normalise(segment)
            if key in normalised:
                end_index = normalised.index(key)
                break

        subdomain = parts[1] if len(parts) > 1 else UNKNOWN
        section = ".".join(parts[2:end_index]) if end_index > 2 else ""
        return subdomain, section

    def build(self, events: Iterable[EventMetadata], schemas: Iterable[SchemaSummary] = ()) -> List[SidebarItem]:
        groups: Dict[str, Dict[str, List[EventMetadata]]] = defaultdict(lambda: defaultdict(list))
        for event in events:
            subdomain, section = self.parse_namespace_hierarchy(event.namespace)
            if event.is_internal:
                section = DOMAIN_EVENTS_SECTION
            groups[subdomain][section].append(event)

        items = [self._subdomain_item(subdomain, groups[subdomain]) for subdomain in sorted(groups)]
        schema_group = self._schemas_item(schemas)
        if schema_group is not None:
            items.append(schema_group)
        return items

    def render(self, items: Sequence[SidebarItem]) -> str:
        payload = [item.to_dict() for item in items]
        self.logger.debug("Rendering navigation manifest with %d top-level item(s)", len(payload))
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"

    def _subdomain_item(self, subdomain: str, sections: Dict[str, List[EventMetadata]]) -> SidebarItem:
        item = SidebarItem(text=capitalize(subdomain), collapsed=False)
        named = len(sections) > 1 or (len(sections) == 1 and next(iter(sections)) != "")
        if not named:
            for events in sections.values():
                item.items.extend(_event_items(events))
            return item
        for section in sorted(sections):
            if section:
                item.items.append(
                    SidebarItem(text=capitalize(section), collapsed=False, items=_event_items(sections[section]))
                )
            else:
                item.items.extend(_event_items(sections[section]))
        return item

    def _schemas_item(self, schemas: Iterable[SchemaSummary]) -> SidebarItem | None:
        grouped: Dict[str, List[Tuple[str, str]]] = defaultdict(list)
        for schema in schemas:
            parts = [part for part in schema.namespace.split(".") if part]
            subdomain = parts[1] if len(parts) > 1 else (parts[0] if parts else UNKNOWN)
            grouped[subdomain].append((schema.name, schema.clean_name))
        if not grouped:
            return None

        children = []
        for subdomain in sorted(grouped):
            entries = sorted(set(grouped[subdomain]))
            children.append(
                SidebarItem(
                    text=capitalize(subdomain),
                    collapsed=False,
                    items=[SidebarItem(text=name, link=f"/schemas/{safe_file_name(clean)}") for name, clean in entries],
                )
            )
        return SidebarItem(text=SCHEMAS_TEXT, collapsed=False, items=children)


def capitalize(value: str) -> str:
    if not value or value.lower() == "unknown":
        return UNKNOWN
    return capitalize_first(value)


def _event_items(events: Iterable[EventMetadata]) -> List[SidebarItem]:
    ordered = sorted(events, key=lambda event: (event.event_name, event.full_type_name))
    return [
        SidebarItem(text=display_name(event.event_name), link="/" + event.file_name[: -len(".md")])
        for event in ordered
    ]


def _normalise(segment: str) -> str:
    return segment.replace("_", "").lower()


__all__ = ["DOMAIN_EVENTS_SECTION", "SidebarGenerator", "capitalize"]
