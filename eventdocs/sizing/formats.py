"""Serialization formats and the calculator factory."""

from __future__ import annotations

from typing import Any, Dict, Type

from ..config import GeneratorOptions, SERIALIZATION_FORMATS
from ..errors import ConfigError
from .calculator import PayloadSizeCalculator


class JsonPayloadSizeCalculator(PayloadSizeCalculator):
    """UTF-8 JSON: quoted strings, ``"name":`` keys, braces, brackets and commas."""

    format_name = "JSON"

    def string_value_overhead(self) -> int:
        return 2

    def property_overhead(self, name: str) -> int:
        return len(name) + 3

    def object_overhead(self) -> int:
        return 2

    def element_separator_overhead(self) -> int:
        return 1

    def collection_overhead(self) -> int:
        return 2


class BinaryPayloadSizeCalculator(PayloadSizeCalculator):
    """Schema-driven binary encodings: no delimiters and no property names on the wire."""

    format_name = "Binary"

    def string_value_overhead(self) -> int:
        return 0

    def property_overhead(self, name: str) -> int:
        return 0

    def object_overhead(self) -> int:
        return 0

    def element_separator_overhead(self) -> int:
        return 0

    def collection_overhead(self) -> int:
        return 0


_CALCULATORS: Dict[str, Type[PayloadSizeCalculator]] = {
    "json": JsonPayloadSizeCalculator,
    "binary": BinaryPayloadSizeCalculator,
}


def create_calculator(serialization_format: str = "json", **settings: Any) -> PayloadSizeCalculator:
    """Return the calculator for `serialization_format` (``json`` or ``binary``)."""
    factory = _CALCULATORS.get(serialization_format.lower())
    if factory is None:
        supported = ", ".join(SERIALIZATION_FORMATS)
        raise ConfigError(f"Unknown serialization format: '{serialization_format}'. Supported: {supported}.")
    return factory(**settings)


def calculator_for(options: GeneratorOptions) -> PayloadSizeCalculator:
    return create_calculator(
        options.serialization_format,
        default_string_length=options.default_string_length,
        default_collection_count=options.default_collection_count,
        max_depth=options.max_depth,
    )


__all__ = [
    "BinaryPayloadSizeCalculator",
    "JsonPayloadSizeCalculator",
    "calculator_for",
    "create_calculator",
]
