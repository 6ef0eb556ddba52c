"""Discovery of event types and extraction of their routing metadata."""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, get_type_hints

from ..config import GeneratorOptions
from ..documentation import DocstringLookup, DocumentationLookup
from ..loader import LoadedModule, definition_line
from ..logging import get_logger
from ..models import EventMetadata, EventPropertyMetadata, PartitionKeyMetadata, PayloadSizeResult
from ..naming import kebab_case, pluralize
from ..sizing import PayloadSizeCalculator, calculator_for
from .matching import MarkerNames, class_markers, find_marker, marker_value
from .types import (
    REFLECTION_ERRORS,
    annotation_metadata,
    friendly_type_name,
    is_complex,
    is_required_hint,
    type_properties,
)

_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


@dataclass
class DiscoveryResult:
    """Events found in one module, plus the types that could not be reflected."""

    events: List[EventMetadata] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    skipped_count: int = 0


@dataclass(frozen=True)
class _ConstructorParameter:
    name: str
    annotation: Any


class EventDiscoverer:
    """Finds classes carrying an event-topic marker and builds `EventMetadata`."""

    def __init__(
        self,
        options: GeneratorOptions,
        *,
        lookup: DocumentationLookup | None = None,
        calculator: PayloadSizeCalculator | None = None,
        marker_names: MarkerNames | None = None,
    ) -> None:
        self.options = options
        self.lookup = lookup or DocstringLookup()
        self.calculator = calculator or calculator_for(options)
        self.markers = marker_names or MarkerNames()
        self._boundaries = {_normalise_segment(segment) for segment in options.boundary_segments}
        self.logger = get_logger("discovery")

    def discover(self, module: LoadedModule) -> DiscoveryResult:
        result = DiscoveryResult()
        for cls in module.types:
            if not self.is_event_type(cls):
                continue
            try:
                event = self.create_event_metadata(cls, module.default_domain, search_root=module.search_root)
            except REFLECTION_ERRORS as exc:
                message = (
                    f"Skipped {cls.__module__}.{cls.__qualname__}: "
                    f"unable to reflect ({exc.__class__.__name__}: {exc})"
                )
                result.warnings.append(message)
                result.skipped_count += 1
                self.logger.warning(message)
                continue
            self.logger.debug("Discovered %s -> %s", event.full_type_name, event.topic_name)
            result.events.append(event)
        return result

    def is_event_type(self, cls: Any) -> bool:
        if not isinstance(cls, type):
            return False
        return find_marker(class_markers(cls), self.markers.event_topic) is not None

    def create_event_metadata(
        self, cls: type, default_domain: str, *, search_root: Path | None = None
    ) -> EventMetadata:
        marker = find_marker(class_markers(cls), self.markers.event_topic)
        if marker is None:
            raise ValueError(f"{cls.__qualname__} carries no event topic marker")

        topic = str(marker_value(marker, "topic", default="") or "") or kebab_case(cls.__name__)
        if marker_value(marker, "pluralize", "should_pluralize", default=False):
            topic = pluralize(topic)
        is_internal = bool(marker_value(marker, "internal", "is_internal", default=False))
        version = str(marker_value(marker, "version", default="v1") or "v1")

        explicit_domain = marker_value(marker, "domain")
        namespace = cls.__module__
        if isinstance(explicit_domain, str) and explicit_domain.strip():
            domain = explicit_domain.strip()
        else:
            domain = self.domain_from_namespace(namespace) or default_domain

        visibility = "internal" if is_internal else "public"
        topic_name = f"{self.options.environment_placeholder}.{domain.lower()}.{visibility}.{topic}.{version}"

        properties, partition_keys = self._properties(cls)
        total = self.calculator.total_size(
            (prop.name, PayloadSizeResult(prop.estimated_size_bytes, prop.is_accurate, prop.size_warning))
            for prop in properties
        )
        source_file, source_line = _source_location(cls, search_root)

        return EventMetadata(
            event_name=cls.__name__,
            full_type_name=f"{namespace}.{cls.__qualname__}",
            namespace=namespace,
            topic_name=topic_name,
            domain=domain,
            version=version,
            is_internal=is_internal,
            properties=tuple(properties),
            partition_keys=tuple(partition_keys),
            obsolete_message=self._deprecation_message(cls),
            total_size=total,
            source_file=source_file,
            source_line=source_line,
            event_type=cls,
        )

    def domain_from_namespace(self, namespace: str) -> str | None:
        """Segment preceding the first boundary segment (``billing.payments.contracts`` -> ``payments``)."""
        parts = [part for part in namespace.split(".") if part]
        for index, part in enumerate(parts):
            if index > 0 and _normalise_segment(part) in self._boundaries:
                return parts[index - 1]
        return None

    def _properties(self, cls: type) -> Tuple[List[EventPropertyMetadata], List[PartitionKeyMetadata]]:
        infos = type_properties(cls)
        parameters = _constructor_parameters(cls)
        documentation = self.lookup.get_description(cls)

        properties: List[EventPropertyMetadata] = []
        partition_keys: List[PartitionKeyMetadata] = []
        for info in infos:
            hint = info.annotation
            own_metadata = annotation_metadata(hint)
            parameter = parameters.get(info.name.lower())
            parameter_metadata = annotation_metadata(parameter.annotation) if parameter else ()

            own_key = find_marker(own_metadata, self.markers.partition_key)
            partition_key = own_key or find_marker(parameter_metadata, self.markers.partition_key)
            required_marker = find_marker(own_metadata, self.markers.required) or find_marker(
                parameter_metadata, self.markers.required
            )
            order = _as_order(marker_value(partition_key, "order", default=0)) if partition_key is not None else None

            type_name = friendly_type_name(hint)
            description = documentation.description_for(info.name)
            size = self.calculator.estimate_property_size(
                info.owner, info.name, hint, metadata=_extra_metadata(parameter_metadata, own_metadata)
            )
            properties.append(
                EventPropertyMetadata(
                    name=info.name,
                    type_name=type_name,
                    property_type=hint,
                    is_required=required_marker is not None or is_required_hint(hint),
                    is_complex_type=is_complex(hint),
                    is_partition_key=partition_key is not None,
                    partition_key_order=order,
                    description=description,
                    estimated_size_bytes=size.size_bytes,
                    is_accurate=size.is_accurate,
                    size_warning=size.warning,
                )
            )
            if partition_key is not None:
                partition_keys.append(
                    PartitionKeyMetadata(
                        name=info.name,
                        type_name=type_name,
                        description=description,
                        order=order or 0,
                        is_from_parameter=own_key is None,
                    )
                )

        partition_keys.sort(key=lambda key: (key.order, key.name))
        return properties, partition_keys

    def _deprecation_message(self, cls: type) -> str | None:
        marker = find_marker(class_markers(cls), self.markers.deprecated)
        if marker is not None:
            return str(marker_value(marker, "message", default="") or "")
        declared = cls.__dict__.get("__deprecated__")
        if isinstance(declared, str):
            return declared
        return None


def _constructor_parameters(cls: type) -> Dict[str, _ConstructorParameter]:
    """Constructor parameters keyed by lower-cased name."""
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return {}
    try:
        hints = get_type_hints(cls.__init__, include_extras=True)
    except REFLECTION_ERRORS:
        hints = {}

    parameters: Dict[str, _ConstructorParameter] = {}
    for parameter in signature.parameters.values():
        if parameter.kind in _VARIADIC:
            continue
        annotation = hints.get(parameter.name, parameter.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = Any
        parameters[parameter.name.lower()] = _ConstructorParameter(parameter.name, annotation)
    return parameters


def _extra_metadata(parameter_metadata: Sequence[object], own_metadata: Sequence[object]) -> Tuple[object, ...]:
    # the calculator already reads the hint's own metadata
    return tuple(item for item in parameter_metadata if not any(item is own for own in own_metadata))


def _as_order(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _normalise_segment(segment: str) -> str:
    return segment.replace("_", "").lower()


def _source_location(cls: type, search_root: Path | None) -> Tuple[str | None, int | None]:
    try:
        source = inspect.getsourcefile(cls)
    except (OSError, TypeError):
        return None, None
    if not source:
        return None, None
    line = definition_line(cls) or None
    path = Path(source)
    if search_root is not None:
        try:
            return path.resolve().relative_to(search_root.resolve()).as_posix(), line
        except (OSError, ValueError):
            pass
    return path.name, line


__all__ = ["DiscoveryResult", "EventDiscoverer"]
