"""Recursive payload size estimation for event properties."""

from __future__ import annotations

import enum
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Hashable, Iterable, List, Literal, MutableSet, Sequence, Tuple, get_args, get_origin

from ..discovery.matching import MarkerNames, class_markers, find_marker, marker_value, module_markers
from ..discovery.types import (
    NoneType,
    REFLECTION_ERRORS,
    annotation_metadata,
    element_type,
    is_collection,
    is_complex,
    is_mapping,
    is_scalar,
    is_union,
    key_type,
    type_key,
    type_properties,
    unwrap_optional,
)
from ..models import PayloadSizeResult

DYNAMIC_STRING_WARNING = "Dynamic size - no max length constraint"
UNBOUNDED_COLLECTION_WARNING = "Collection size estimated (no Range constraint)"
RUNTIME_COLLECTION_WARNING = "Collection size depends on runtime length"
UNKNOWN_ELEMENT_WARNING = "Unknown collection element type"
CIRCULAR_REFERENCE_WARNING = "Circular reference detected"
MAX_DEPTH_WARNING = "Maximum nesting depth reached"
UNKNOWN_TYPE_WARNING = "Unknown type - size is a placeholder"

FALLBACK_SIZE = 4
ENUM_SIZE = 4

# bool before int and datetime before date: both are subclasses.
_FIXED_SIZES: Tuple[Tuple[type, int], ...] = (
    (bool, 1),
    (int, 8),
    (float, 8),
    (complex, 16),
    (Decimal, 16),
    (datetime, 8),
    (date, 4),
    (time, 8),
    (timedelta, 8),
    (uuid.UUID, 16),
)


class PayloadSizeCalculator(ABC):
    """Estimates serialized sizes; subclasses define the format overheads.

    Results are estimates. A result is accurate only when every contributing
    size is bounded by a declared constraint or a fixed-width type.
    """

    format_name = ""

    def __init__(
        self,
        *,
        default_string_length: int = 0,
        default_collection_count: int = 10,
        max_depth: int = 32,
        marker_names: MarkerNames | None = None,
    ) -> None:
        self.default_string_length = default_string_length
        self.default_collection_count = default_collection_count
        self.max_depth = max_depth
        self.markers = marker_names or MarkerNames()

    @abstractmethod
    def string_value_overhead(self) -> int:
        """Bytes wrapped around a string value (JSON quotes)."""

    @abstractmethod
    def property_overhead(self, name: str) -> int:
        """Bytes spent on a property key and its delimiters."""

    @abstractmethod
    def object_overhead(self) -> int:
        """Bytes for object delimiters."""

    @abstractmethod
    def element_separator_overhead(self) -> int:
        """Bytes between two elements or properties."""

    @abstractmethod
    def collection_overhead(self) -> int:
        """Bytes for collection delimiters."""

    def estimate_size(self, tp: Any) -> PayloadSizeResult:
        """Estimate the serialized size of a value of type `tp`."""
        return self._guarded(tp, (), None)

    def estimate_property_size(
        self, owner: type | None, name: str, hint: Any, *, metadata: Sequence[object] = ()
    ) -> PayloadSizeResult:
        """Estimate one property; `metadata` adds markers declared outside the hint."""
        return self._guarded(hint, tuple(metadata), owner)

    def total_size(self, sizes: Iterable[Tuple[str, PayloadSizeResult]]) -> PayloadSizeResult:
        """Aggregate property estimates into an object payload estimate."""
        total = 0
        count = 0
        accurate = True
        for name, result in sizes:
            total += result.size_bytes + self.property_overhead(name)
            accurate = accurate and result.is_accurate
            count += 1
        total += self._object_wrapper(count)
        return PayloadSizeResult(total, accurate)

    def _guarded(self, tp: Any, metadata: Tuple[object, ...], owner: type | None) -> PayloadSizeResult:
        try:
            return self._estimate(tp, metadata, owner, set(), 0)
        except REFLECTION_ERRORS as exc:
            return PayloadSizeResult(
                0, False, f"Unable to analyze property due to missing dependency ({exc.__class__.__name__})"
            )

    def _estimate(
        self,
        tp: Any,
        metadata: Tuple[object, ...],
        owner: type | None,
        visited: MutableSet[Hashable],
        depth: int,
    ) -> PayloadSizeResult:
        metadata = annotation_metadata(tp) + metadata
        inner, _ = unwrap_optional(tp)

        if is_union(inner):
            return self._union_size(inner, owner, visited, depth)
        if isinstance(inner, type) and issubclass(inner, enum.Enum):
            return PayloadSizeResult(ENUM_SIZE, True)
        if isinstance(inner, type) and issubclass(inner, (str, bytes, bytearray)):
            return self._string_size(metadata, owner)
        if get_origin(inner) is Literal:
            return PayloadSizeResult(ENUM_SIZE, True)
        if is_scalar(inner):
            return PayloadSizeResult(self.scalar_size(inner), True)
        if is_collection(inner):
            return self._collection_size(inner, metadata, owner, visited, depth)
        if is_complex(inner):
            return self._complex_size(inner, visited, depth)
        return PayloadSizeResult(FALLBACK_SIZE, False, UNKNOWN_TYPE_WARNING)

    @staticmethod
    def scalar_size(tp: type) -> int:
        for scalar, size in _FIXED_SIZES:
            if issubclass(tp, scalar):
                return size
        return FALLBACK_SIZE

    def _string_size(self, metadata: Tuple[object, ...], owner: type | None) -> PayloadSizeResult:
        bytes_per_char = self._bytes_per_char(metadata, owner)
        max_length = self._max_length(metadata)
        if max_length is not None:
            return PayloadSizeResult(max_length * bytes_per_char + self.string_value_overhead(), True)
        size = 0
        if self.default_string_length > 0:
            size = self.default_string_length * bytes_per_char + self.string_value_overhead()
        return PayloadSizeResult(size, False, DYNAMIC_STRING_WARNING)

    def _max_length(self, metadata: Tuple[object, ...]) -> int | None:
        marker = find_marker(metadata, self.markers.max_length)
        if marker is not None:
            value = marker_value(marker, "maximum_length", "max_length", "length")
            if _is_count(value):
                return value
        for item in metadata:
            value = getattr(item, "max_length", None)
            if _is_count(value):
                return value
        return None

    def _bytes_per_char(self, metadata: Tuple[object, ...], owner: type | None) -> int:
        sources: List[Tuple[object, ...]] = [metadata]
        if owner is not None:
            sources.append(class_markers(owner))
            sources.append(module_markers(owner.__module__))
        for source in sources:
            marker = find_marker(source, self.markers.string_encoding)
            if marker is not None:
                value = marker_value(marker, "bytes_per_char", default=1)
                if _is_count(value) and value > 0:
                    return value
        return 1

    def _collection_size(
        self,
        tp: Any,
        metadata: Tuple[object, ...],
        owner: type | None,
        visited: MutableSet[Hashable],
        depth: int,
    ) -> PayloadSizeResult:
        element = element_type(tp)
        if element is None or element is Ellipsis:
            return PayloadSizeResult(0, False, UNKNOWN_ELEMENT_WARNING)

        range_marker = find_marker(metadata, self.markers.range)
        maximum = marker_value(range_marker, "maximum", "max") if range_marker is not None else None
        bounded = _is_count(maximum)
        count = maximum if bounded else self.default_collection_count

        entry = self._estimate(element, (), owner, visited, depth + 1)
        entry_size = entry.size_bytes
        wrapper = self.collection_overhead()
        if is_mapping(tp):
            key = key_type(tp)
            if key is not None:
                entry_size += self._estimate(key, (), owner, visited, depth + 1).size_bytes
            entry_size += self.property_overhead("")
            wrapper = self.object_overhead()

        total = entry_size * count + wrapper
        if count > 1:
            total += self.element_separator_overhead() * (count - 1)
        warning = (entry.warning or RUNTIME_COLLECTION_WARNING) if bounded else UNBOUNDED_COLLECTION_WARNING
        return PayloadSizeResult(total, False, warning)

    def _complex_size(self, tp: Any, visited: MutableSet[Hashable], depth: int) -> PayloadSizeResult:
        key = type_key(tp)
        if key in visited:
            return PayloadSizeResult(0, False, CIRCULAR_REFERENCE_WARNING)
        if depth >= self.max_depth:
            return PayloadSizeResult(0, False, MAX_DEPTH_WARNING)

        visited.add(key)
        try:
            try:
                properties = type_properties(tp)
            except REFLECTION_ERRORS as exc:
                return PayloadSizeResult(
                    0, False, f"Unable to analyze type due to missing dependency ({exc.__class__.__name__})"
                )

            total = 0
            counted = 0
            accurate = True
            warnings: List[str] = []
            for prop in properties:
                try:
                    result = self._estimate(prop.annotation, (), prop.owner, visited, depth + 1)
                except REFLECTION_ERRORS as exc:
                    warnings.append(
                        f"{prop.name}: Unable to analyze due to missing dependency ({exc.__class__.__name__})"
                    )
                    accurate = False
                    continue
                total += result.size_bytes + self.property_overhead(prop.name)
                counted += 1
                accurate = accurate and result.is_accurate
                if result.warning:
                    warnings.append(f"{prop.name}: {result.warning}")
            total += self._object_wrapper(counted)
            return PayloadSizeResult(total, accurate, ", ".join(warnings) or None)
        finally:
            visited.discard(key)

    def _union_size(
        self, tp: Any, owner: type | None, visited: MutableSet[Hashable], depth: int
    ) -> PayloadSizeResult:
        members = [arg for arg in get_args(tp) if arg is not NoneType]
        results = [self._estimate(member, (), owner, visited, depth) for member in members]
        if not results:
            return PayloadSizeResult(0, True)
        largest = max(results, key=lambda result: result.size_bytes)
        accurate = all(result.is_accurate for result in results)
        return PayloadSizeResult(largest.size_bytes, accurate, largest.warning)

    def _object_wrapper(self, property_count: int) -> int:
        overhead = self.object_overhead()
        if property_count > 1:
            overhead += self.element_separator_overhead() * (property_count - 1)
        return overhead


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


__all__ = [
    "CIRCULAR_REFERENCE_WARNING",
    "DYNAMIC_STRING_WARNING",
    "FALLBACK_SIZE",
    "MAX_DEPTH_WARNING",
    "PayloadSizeCalculator",
    "UNBOUNDED_COLLECTION_WARNING",
]
