"""Classification and naming helpers for Python type hints.

Everything here is pure and stateless. Traversals that can revisit a type
(self-referential or mutually-referential classes) keep a visited set that
is scoped to the top-level call.
"""

from __future__ import annotations

import collections
import collections.abc as abc
import dataclasses
import enum
import inspect
import types
import typing
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import (
    Annotated,
    Any,
    ClassVar,
    Dict,
    Hashable,
    Iterable,
    List,
    Literal,
    Mapping,
    MutableSet,
    Optional,
    Tuple,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from ..logging import get_logger
from ..models import SchemaSummary

NoneType = type(None)

SCALAR_TYPES: Tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    Decimal,
    datetime,
    date,
    time,
    timedelta,
    uuid.UUID,
)

# Abstract collection shapes accepted by identity; concrete ones by subclass.
_ABSTRACT_COLLECTIONS: Tuple[Any, ...] = (
    abc.Iterable,
    abc.Collection,
    abc.Sequence,
    abc.MutableSequence,
    abc.Set,
    abc.MutableSet,
    abc.Mapping,
    abc.MutableMapping,
)
_CONCRETE_COLLECTIONS: Tuple[type, ...] = (list, tuple, set, frozenset, dict, collections.deque)
_MAPPINGS: Tuple[Any, ...] = (abc.Mapping, abc.MutableMapping)
_NON_SCHEMA_MODULES = frozenset({"builtins", "typing", "collections.abc", "types"})

_WRAPPER_FORMS = tuple(
    form
    for form in (
        getattr(typing, "Required", None),
        getattr(typing, "NotRequired", None),
        getattr(typing, "ReadOnly", None),
        getattr(typing, "Final", None),
    )
    if form is not None
)

# Raised while resolving annotations of partially importable modules.
REFLECTION_ERRORS: Tuple[type, ...] = (ImportError, NameError, AttributeError, TypeError)

logger = get_logger("discovery.types")


@dataclass(frozen=True)
class PropertyInfo:
    """A public property of a class: annotated field or typed ``@property``."""

    name: str
    annotation: Any
    owner: type


def type_key(tp: Any) -> Hashable:
    """Hashable identity for a type hint (some Annotated payloads are unhashable)."""
    try:
        hash(tp)
    except TypeError:
        return ("id", id(tp))
    return tp


def unwrap_annotated(tp: Any) -> Any:
    """Strip ``Annotated``, ``Required``-style qualifiers and ``NewType`` layers."""
    while True:
        origin = get_origin(tp)
        if origin is Annotated:
            tp = tp.__origin__
        elif origin is not None and origin in _WRAPPER_FORMS:
            tp = get_args(tp)[0]
        elif hasattr(tp, "__supertype__"):
            tp = tp.__supertype__
        else:
            return tp


def annotation_metadata(tp: Any) -> Tuple[object, ...]:
    """Collect ``Annotated`` metadata, also from the non-None member of an Optional."""
    collected: List[object] = []
    current = tp
    for _ in range(8):
        origin = get_origin(current)
        if origin is Annotated:
            collected.extend(getattr(current, "__metadata__", ()))
            current = current.__origin__
        elif origin is not None and origin in _WRAPPER_FORMS:
            current = get_args(current)[0]
        elif is_union(current):
            members = [arg for arg in get_args(current) if arg is not NoneType]
            if len(members) != 1:
                break
            current = members[0]
        else:
            break
    return tuple(collected)


def unwrap_optional(tp: Any) -> Tuple[Any, bool]:
    """Return ``(inner_type, is_optional)`` for ``X | None`` / ``Optional[X]`` hints."""
    tp = unwrap_annotated(tp)
    if tp is None or tp is NoneType:
        return NoneType, True
    if is_union(tp):
        args = get_args(tp)
        members = tuple(arg for arg in args if arg is not NoneType)
        if len(members) < len(args):
            if len(members) == 1:
                return unwrap_annotated(members[0]), True
            return Union[members], True
    return tp, False


def is_scalar(tp: Any) -> bool:
    """True for primitives, enums, literals and the common value types."""
    inner, _ = unwrap_optional(tp)
    origin = get_origin(inner)
    if origin is Literal:
        return True
    if origin is not None or not isinstance(inner, type):
        return False
    if issubclass(inner, enum.Enum):
        return True
    return issubclass(inner, SCALAR_TYPES)


def is_collection(tp: Any) -> bool:
    """True for sequences, sets and mappings (bare or parameterised)."""
    inner, _ = unwrap_optional(tp)
    origin = get_origin(inner) or inner
    if origin in _ABSTRACT_COLLECTIONS:
        return True
    if not isinstance(origin, type):
        return False
    if issubclass(origin, (str, bytes, bytearray)):
        return False
    if typing.is_typeddict(origin):
        return False
    if issubclass(origin, tuple) and hasattr(origin, "_fields"):
        return False
    return issubclass(origin, _CONCRETE_COLLECTIONS)


def is_mapping(tp: Any) -> bool:
    inner, _ = unwrap_optional(tp)
    origin = get_origin(inner) or inner
    if origin in _MAPPINGS:
        return True
    return isinstance(origin, type) and issubclass(origin, dict) and not typing.is_typeddict(origin)


def element_type(tp: Any) -> Optional[Any]:
    """Element type of a collection; for mappings this is the value type."""
    inner, _ = unwrap_optional(tp)
    args = get_args(inner)
    if not args:
        return None
    if is_mapping(inner):
        return args[1] if len(args) > 1 else None
    return args[0]


def key_type(tp: Any) -> Optional[Any]:
    inner, _ = unwrap_optional(tp)
    args = get_args(inner)
    if is_mapping(inner) and args:
        return args[0]
    return None


def is_complex(tp: Any) -> bool:
    """True when the type needs its own schema document.

    A type re-encountered during the same call is treated as non-complex so
    the walk terminates on recursive hints.
    """
    return _is_complex(tp, set())


def _is_complex(tp: Any, visited: MutableSet[Hashable]) -> bool:
    key = type_key(tp)
    if key in visited:
        return False
    visited.add(key)
    try:
        inner, _ = unwrap_optional(tp)
        if is_union(inner):
            return any(_is_complex(member, visited) for member in get_args(inner) if member is not NoneType)
        if is_collection(inner):
            element = element_type(inner)
            return element is not None and _is_complex(element, visited)
        if is_scalar(inner):
            return False
        target = _structured_class(inner)
        if target is None:
            return False
        return target.__module__ not in _NON_SCHEMA_MODULES
    finally:
        visited.discard(key)


def _structured_class(tp: Any) -> Optional[type]:
    origin = get_origin(tp)
    if origin is not None:
        return origin if isinstance(origin, type) and not is_union(tp) else None
    return tp if isinstance(tp, type) else None


def schema_type_of(tp: Any) -> Optional[Any]:
    """Return the single complex type a property refers to, or None.

    A union of several complex types has no single schema; use
    `schema_types_of` for those.
    """
    targets = schema_types_of(tp)
    return targets[0] if len(targets) == 1 else None


def schema_types_of(tp: Any) -> List[Any]:
    """Complex types a property refers to, looking through collections and unions."""
    collected: Dict[Hashable, Any] = {}
    _gather_schema_types(tp, collected, set())
    return list(collected.values())


def _gather_schema_types(tp: Any, collected: Dict[Hashable, Any], seen: MutableSet[Hashable]) -> None:
    key = type_key(tp)
    if key in seen:
        return
    seen.add(key)
    inner, _ = unwrap_optional(tp)
    if is_union(inner):
        for member in get_args(inner):
            if member is not NoneType:
                _gather_schema_types(member, collected, seen)
        return
    if is_collection(inner):
        element = element_type(inner)
        if element is not None:
            _gather_schema_types(element, collected, seen)
        return
    if is_complex(inner):
        collected.setdefault(type_key(inner), inner)


def is_required_hint(tp: Any) -> bool:
    """Non-nullable hints are required; ``Optional`` and ``Any`` are not."""
    inner, optional = unwrap_optional(tp)
    if optional:
        return False
    return inner is not Any and inner is not object


def type_properties(tp: Any) -> List[PropertyInfo]:
    """Ordered public properties of a class (or parameterised generic class).

    Annotated attributes come first in MRO order (base classes first),
    followed by ``@property`` members with a return annotation. Classes that
    publish a ``model_fields`` table (pydantic) contribute only those fields
    and their computed fields. Errors from unresolvable annotations propagate
    to the caller.
    """
    cls = _structured_class(unwrap_optional(tp)[0])
    if cls is None or cls.__module__ in _NON_SCHEMA_MODULES:
        return []
    substitutions = _typevar_substitutions(tp)

    hints = get_type_hints(cls, include_extras=True)
    declared_fields = _model_table(cls, "model_fields")
    properties: List[PropertyInfo] = []
    seen: set[str] = set()
    for name, hint in hints.items():
        if name.startswith("_") or _is_class_var(hint) or isinstance(hint, dataclasses.InitVar):
            continue
        if declared_fields is not None and name not in declared_fields:
            continue
        owner = _declaring_class(cls, name)
        properties.append(PropertyInfo(name=name, annotation=_substitute(hint, substitutions), owner=owner))
        seen.add(name)

    computed_fields = _model_table(cls, "model_computed_fields")
    if declared_fields is not None:
        # pydantic models: only computed fields are payload, not BaseModel's own properties
        for name, info in (computed_fields or {}).items():
            if name in seen:
                continue
            returns = getattr(info, "return_type", None)
            if not _is_hint(returns):
                returns = _property_return(getattr(info, "wrapped_property", None))
            properties.append(PropertyInfo(name=name, annotation=_substitute(returns, substitutions), owner=cls))
            seen.add(name)
        return properties

    for klass in reversed(cls.__mro__):
        if klass is object or klass.__module__ in _NON_SCHEMA_MODULES:
            continue
        for name, member in vars(klass).items():
            if name.startswith("_") or name in seen or not isinstance(member, property):
                continue
            if member.fget is None:
                continue
            returns = _property_return(member)
            properties.append(PropertyInfo(name=name, annotation=_substitute(returns, substitutions), owner=klass))
            seen.add(name)
    return properties


def _model_table(cls: type, attribute: str) -> Optional[Mapping[str, Any]]:
    """Field table a model framework (pydantic) publishes on the class, if any."""
    table = getattr(cls, attribute, None)
    return table if isinstance(table, Mapping) else None


def _is_hint(value: Any) -> bool:
    return isinstance(value, type) or get_origin(value) is not None or value is Any


def _property_return(member: Any) -> Any:
    fget = getattr(member, "fget", None)
    if fget is None:
        return Any
    return get_type_hints(fget, include_extras=True).get("return", Any)


def _declaring_class(cls: type, name: str) -> type:
    for klass in cls.__mro__:
        try:
            annotations = inspect.get_annotations(klass)
        except REFLECTION_ERRORS:
            continue
        if name in annotations:
            return klass
    return cls


def _is_class_var(hint: Any) -> bool:
    return hint is ClassVar or get_origin(hint) is ClassVar


def _typevar_substitutions(tp: Any) -> Dict[Any, Any]:
    inner = unwrap_optional(tp)[0]
    origin = get_origin(inner)
    if not isinstance(origin, type):
        return {}
    parameters = getattr(origin, "__parameters__", ())
    return dict(zip(parameters, get_args(inner)))


def _substitute(hint: Any, substitutions: Dict[Any, Any]) -> Any:
    if not substitutions:
        return hint
    if isinstance(hint, typing.TypeVar):
        return substitutions.get(hint, hint)
    parameters = getattr(hint, "__parameters__", ())
    if not parameters:
        return hint
    try:
        return hint[tuple(substitutions.get(param, param) for param in parameters)]
    except TypeError:
        return hint


def collect_complex_types(properties: Iterable[Any]) -> List[Any]:
    """Distinct complex types referenced directly by event properties, in order."""
    collected: Dict[Hashable, Any] = {}
    for prop in properties:
        if not getattr(prop, "is_complex_type", False):
            continue
        for target in schema_types_of(prop.property_type):
            collected.setdefault(type_key(target), target)
    return list(collected.values())


def collect_nested_complex_types(parent: Any, accumulated: MutableSet[Any]) -> None:
    """Breadth-first expansion of the complex types reachable from `parent`.

    A type already in `accumulated` is never expanded again, which bounds the
    walk on cyclic type graphs.
    """
    queue: deque[Any] = deque([parent])
    while queue:
        current = queue.popleft()
        try:
            properties = type_properties(current)
        except REFLECTION_ERRORS as exc:
            logger.debug("Unable to expand %s: %s", clean_type_name(current), exc)
            continue
        for prop in properties:
            for target in schema_types_of(prop.annotation):
                if target in accumulated:
                    continue
                accumulated.add(target)
                queue.append(target)


def clean_type_name(tp: Any) -> str:
    """Namespace-qualified name with generic arguments resolved recursively.

    ``shop.models.Page[shop.models.Item]``, ``dict[str, shop.models.Money]``.
    """
    inner = unwrap_annotated(tp) if not hasattr(tp, "__supertype__") else tp
    if isinstance(inner, str):
        return inner
    if isinstance(inner, typing.ForwardRef):
        return inner.__forward_arg__
    if inner is NoneType or inner is None:
        return "None"
    if inner is Any:
        return "typing.Any"
    if inner is Ellipsis:
        return "..."
    if is_union(inner):
        return " | ".join(clean_type_name(arg) for arg in get_args(inner))
    origin = get_origin(inner)
    if origin is Literal:
        return f"typing.Literal[{', '.join(repr(arg) for arg in get_args(inner))}]"
    if origin is not None:
        arguments = ", ".join(clean_type_name(arg) for arg in get_args(inner))
        base = clean_type_name(origin)
        return f"{base}[{arguments}]" if arguments else base
    if isinstance(inner, type):
        if inner.__module__ == "builtins":
            return inner.__qualname__
        return f"{inner.__module__}.{inner.__qualname__}"
    name = getattr(inner, "__name__", None)
    module = getattr(inner, "__module__", None)
    if name and module and module != "builtins":
        return f"{module}.{name}"
    return name or repr(inner)


def friendly_type_name(tp: Any) -> str:
    """Short display name: ``str``, ``list[Money]``, ``UUID | None``."""
    inner = tp
    while get_origin(inner) is Annotated or (
        get_origin(inner) is not None and get_origin(inner) in _WRAPPER_FORMS
    ):
        inner = get_args(inner)[0] if get_origin(inner) is not Annotated else inner.__origin__
    if isinstance(inner, str):
        return inner
    if isinstance(inner, typing.ForwardRef):
        return inner.__forward_arg__
    if inner is NoneType or inner is None:
        return "None"
    if inner is Any:
        return "Any"
    if inner is Ellipsis:
        return "..."
    if is_union(inner):
        args = get_args(inner)
        members = [friendly_type_name(arg) for arg in args if arg is not NoneType]
        if NoneType in args:
            members.append("None")
        return " | ".join(members)
    origin = get_origin(inner)
    if origin is Literal:
        return f"Literal[{', '.join(repr(arg) for arg in get_args(inner))}]"
    if origin is not None:
        base = getattr(origin, "__name__", None) or repr(origin)
        arguments = ", ".join(friendly_type_name(arg) for arg in get_args(inner))
        return f"{base}[{arguments}]" if arguments else base
    name = getattr(inner, "__name__", None)
    return name or repr(inner)


def schema_summary(tp: Any) -> SchemaSummary:
    """Names of a schema type that can safely outlive the type itself."""
    cls = _structured_class(tp)
    return SchemaSummary(
        clean_name=clean_type_name(tp),
        name=friendly_type_name(tp),
        namespace=getattr(cls, "__module__", "") or "",
    )


def is_union(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union or origin is getattr(types, "UnionType", Union)


__all__ = [
    "NoneType",
    "PropertyInfo",
    "REFLECTION_ERRORS",
    "SCALAR_TYPES",
    "annotation_metadata",
    "clean_type_name",
    "collect_complex_types",
    "collect_nested_complex_types",
    "element_type",
    "friendly_type_name",
    "is_collection",
    "is_complex",
    "is_mapping",
    "is_required_hint",
    "is_scalar",
    "is_union",
    "key_type",
    "schema_summary",
    "schema_type_of",
    "schema_types_of",
    "type_key",
    "type_properties",
    "unwrap_annotated",
    "unwrap_optional",
]
