"""Human-authored descriptions for event and schema types.

Two sources are supported: class docstrings (Google style ``Attributes:``
sections) and companion YAML files keyed by qualified type name. Lookups
never raise; missing documentation degrades to a placeholder.
"""

from __future__ import annotations

import inspect
import re
import textwrap
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, get_origin

import yaml

from .logging import get_logger

NO_DESCRIPTION = "No description available"
DOCUMENTATION_SUFFIXES = (".yml", ".yaml")
PACKAGE_DOCUMENTATION_NAMES = ("docs.yml", "docs.yaml")

_SECTION_HEADER = re.compile(r"^(?P<name>[A-Za-z][A-Za-z ]*):\s*$")
_SECTION_KINDS = {
    "attributes": "attributes",
    "args": "attributes",
    "arguments": "attributes",
    "fields": "attributes",
    "parameters": "attributes",
    "example": "example",
    "examples": "example",
    "remarks": "remarks",
    "note": "remarks",
    "notes": "remarks",
}
_ENTRY = re.compile(r"^(?P<name>\w+)\s*(?:\([^)]*\))?\s*:\s*(?P<text>.*)$")

logger = get_logger("documentation")


@dataclass(frozen=True)
class TypeDocumentation:
    """Descriptions for one type; empty strings mean "not documented"."""

    summary: str = ""
    remarks: str = ""
    example: str = ""
    property_descriptions: Mapping[str, str] = field(default_factory=dict)

    def description_for(self, name: str) -> str:
        return self.property_descriptions.get(name) or NO_DESCRIPTION

    def merged(self, override: "TypeDocumentation") -> "TypeDocumentation":
        """Field-wise merge where non-empty values of `override` win."""
        properties = dict(self.property_descriptions)
        properties.update({key: value for key, value in override.property_descriptions.items() if value})
        return TypeDocumentation(
            summary=override.summary or self.summary,
            remarks=override.remarks or self.remarks,
            example=override.example or self.example,
            property_descriptions=properties,
        )


EMPTY_DOCUMENTATION = TypeDocumentation()


class DocumentationLookup(ABC):
    """Supplies descriptions for a type and its properties."""

    @abstractmethod
    def get_description(self, tp: Any) -> TypeDocumentation:
        """Return documentation for `tp`, or an empty record when there is none."""


class DocstringLookup(DocumentationLookup):
    """Reads a class's own docstring (inherited docstrings are ignored)."""

    def get_description(self, tp: Any) -> TypeDocumentation:
        cls = _documented_class(tp)
        if cls is None:
            return EMPTY_DOCUMENTATION
        doc = cls.__dict__.get("__doc__")
        if not isinstance(doc, str) or _is_generated_docstring(cls, doc):
            return EMPTY_DOCUMENTATION
        return parse_docstring(doc)


class YamlDocumentationLookup(DocumentationLookup):
    """Companion documentation files mapping qualified type names to descriptions.

    Example file::

        billing.contracts.integration_events.PaymentReceived:
          summary: Published when a payment settles.
          properties:
            tenant_id: Tenant that owns the payment.

    Unreadable files are reported through `warnings` and otherwise ignored.
    """

    def __init__(self, paths: Iterable[Path] = ()) -> None:
        self.paths = [Path(path) for path in paths]
        self.warnings: List[str] = []
        self._entries: Dict[str, TypeDocumentation] = {}
        for path in self.paths:
            self._load(path)

    def get_description(self, tp: Any) -> TypeDocumentation:
        cls = _documented_class(tp)
        if cls is None:
            return EMPTY_DOCUMENTATION
        for key in (f"{cls.__module__}.{cls.__qualname__}", cls.__qualname__, cls.__name__):
            entry = self._entries.get(key)
            if entry is not None:
                return entry
        return EMPTY_DOCUMENTATION

    def _load(self, path: Path) -> None:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            self._warn(f"Ignoring documentation file {path}: {exc}")
            return
        if data is None:
            return
        if isinstance(data, dict) and isinstance(data.get("types"), dict):
            data = data["types"]
        if not isinstance(data, dict):
            self._warn(f"Ignoring documentation file {path}: expected a mapping of type names")
            return
        for name, value in data.items():
            entry = _entry_from_mapping(value)
            if entry is None:
                self._warn(f"{path}: entry for {name!r} is not a mapping")
                continue
            existing = self._entries.get(str(name))
            self._entries[str(name)] = existing.merged(entry) if existing else entry
        logger.debug("Loaded %d documentation entries from %s", len(data), path)

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)


class CompositeLookup(DocumentationLookup):
    """Consults lookups in order; later lookups override earlier ones per field."""

    def __init__(self, lookups: Sequence[DocumentationLookup]) -> None:
        self.lookups = list(lookups)

    def get_description(self, tp: Any) -> TypeDocumentation:
        result = EMPTY_DOCUMENTATION
        for lookup in self.lookups:
            result = result.merged(lookup.get_description(tp))
        return result


def build_lookup(documentation_paths: Iterable[Path]) -> DocumentationLookup:
    """Docstrings, overridden by any companion YAML files."""
    paths = list(documentation_paths)
    if not paths:
        return DocstringLookup()
    return CompositeLookup([DocstringLookup(), YamlDocumentationLookup(paths)])


def discover_documentation_files(
    module_paths: Iterable[Path], explicit: Iterable[Path] = ()
) -> List[Path]:
    """Explicit documentation files plus companions found next to each module.

    A module ``events.py`` (or ``events.whl``) pairs with ``events.yml`` or
    ``events.yaml``; a package directory pairs with a ``docs.yml`` inside it.
    """
    found: List[Path] = []

    def _add(candidate: Path) -> None:
        if candidate not in found:
            found.append(candidate)

    for path in explicit:
        path = Path(path)
        if path.is_file():
            _add(path)
        else:
            logger.warning("Documentation file not found: %s", path)

    for module_path in module_paths:
        module_path = Path(module_path)
        if module_path.is_dir():
            candidates = [module_path / name for name in PACKAGE_DOCUMENTATION_NAMES]
        else:
            candidates = [module_path.with_suffix(suffix) for suffix in DOCUMENTATION_SUFFIXES]
        for candidate in candidates:
            if candidate.is_file():
                _add(candidate)
    return found


def parse_docstring(doc: str) -> TypeDocumentation:
    """Split a Google style docstring into summary, remarks, example and attributes."""
    prose: List[str] = []
    sections: Dict[str, List[str]] = {}
    current: str | None = None
    for line in inspect.cleandoc(doc).splitlines():
        header = _SECTION_HEADER.match(line)
        kind = _SECTION_KINDS.get(header.group("name").strip().lower()) if header else None
        if kind is not None:
            current = kind
            sections.setdefault(kind, [])
            continue
        if current is not None and line and not line[0].isspace():
            current = None
        if current is None:
            prose.append(line)
        else:
            sections[current].append(line)

    paragraphs = _paragraphs(prose)
    remarks = paragraphs[1:] + _paragraphs(textwrap.dedent("\n".join(sections.get("remarks", []))).splitlines())
    return TypeDocumentation(
        summary=paragraphs[0] if paragraphs else "",
        remarks="\n\n".join(remarks),
        example=textwrap.dedent("\n".join(sections.get("example", []))).strip("\n"),
        property_descriptions=_parse_entries(sections.get("attributes", [])),
    )


def _paragraphs(lines: Iterable[str]) -> List[str]:
    paragraphs: List[str] = []
    current: List[str] = []
    for line in lines:
        if line.strip():
            current.append(line.strip())
        elif current:
            paragraphs.append(" ".join(current))
            current = []
    if current:
        paragraphs.append(" ".join(current))
    return paragraphs


def _parse_entries(lines: List[str]) -> Dict[str, str]:
    entries: Dict[str, str] = {}
    name: str | None = None
    for line in textwrap.dedent("\n".join(lines)).splitlines():
        if not line.strip():
            continue
        match = _ENTRY.match(line) if not line[0].isspace() else None
        if match:
            name = match.group("name")
            entries[name] = match.group("text").strip()
        elif name is not None:
            entries[name] = f"{entries[name]} {line.strip()}".strip()
    return entries


def _entry_from_mapping(value: Any) -> TypeDocumentation | None:
    if isinstance(value, str):
        return TypeDocumentation(summary=value.strip())
    if not isinstance(value, dict):
        return None
    properties = value.get("properties") or {}
    if not isinstance(properties, dict):
        properties = {}
    return TypeDocumentation(
        summary=str(value.get("summary") or "").strip(),
        remarks=str(value.get("remarks") or "").strip(),
        example=str(value.get("example") or "").strip("\n"),
        property_descriptions={str(key): str(text).strip() for key, text in properties.items() if text},
    )


def _documented_class(tp: Any) -> type | None:
    origin = get_origin(tp)
    if origin is not None:
        return origin if isinstance(origin, type) else None
    return tp if isinstance(tp, type) else None


def _is_generated_docstring(cls: type, doc: str) -> bool:
    # dataclasses synthesise "Name(field: type, ...)" when no docstring is given
    return doc.startswith(f"{cls.__name__}(")


__all__ = [
    "CompositeLookup",
    "DocstringLookup",
    "DocumentationLookup",
    "EMPTY_DOCUMENTATION",
    "NO_DESCRIPTION",
    "TypeDocumentation",
    "YamlDocumentationLookup",
    "build_lookup",
    "discover_documentation_files",
    "parse_docstring",
]
