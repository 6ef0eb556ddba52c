"""Payload size estimation."""

from .calculator import (
    CIRCULAR_REFERENCE_WARNING,
    DYNAMIC_STRING_WARNING,
    MAX_DEPTH_WARNING,
    UNBOUNDED_COLLECTION_WARNING,
    PayloadSizeCalculator,
)
from .formats import (
    BinaryPayloadSizeCalculator,
    JsonPayloadSizeCalculator,
    calculator_for,
    create_calculator,
)

__all__ = [
    "BinaryPayloadSizeCalculator",
    "CIRCULAR_REFERENCE_WARNING",
    "DYNAMIC_STRING_WARNING",
    "JsonPayloadSizeCalculator",
    "MAX_DEPTH_WARNING",
    "PayloadSizeCalculator",
    "UNBOUNDED_COLLECTION_WARNING",
    "calculator_for",
    "create_calculator",
]
