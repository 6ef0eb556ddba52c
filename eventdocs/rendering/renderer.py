"""Renders event and schema documents from Jinja2 templates."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from jinja2 import ChoiceLoader, FileSystemLoader, Template, TemplateNotFound, TemplateSyntaxError
from jinja2.sandbox import SandboxedEnvironment

from ..config import GeneratorOptions
from ..discovery.matching import MarkerNames, find_marker
from ..discovery.types import (
    annotation_metadata,
    clean_type_name,
    friendly_type_name,
    is_complex,
    is_required_hint,
    schema_types_of,
    type_properties,
)
from ..documentation import NO_DESCRIPTION, DocumentationLookup, TypeDocumentation
from ..errors import TemplateConfigError
from ..logging import get_logger
from ..models import EventMetadata, EventPropertyMetadata, RenderedDocument
from ..naming import display_name, kebab_case, safe_file_name
from ..sizing import PayloadSizeCalculator
from .filters import format_bytes, md_escape

DEFAULT_TEMPLATES_DIRECTORY = Path(__file__).with_name("templates")
TEMPLATE_FILES: Dict[str, str] = {
    "event": "event.md.j2",
    "schema": "schema.md.j2",
}
SCHEMAS_DIRECTORY = "schemas"
GENERATED_BY = "eventdocs"


class TemplateRenderer:
    """Binds discovered metadata into template contexts and renders markdown.

    Templates are looked up in the custom directory first, then in the
    built-in defaults. A custom template that is missing or fails to parse
    falls back to the default; a missing default is a configuration error.
    """

    def __init__(
        self,
        templates_directory: Path | None = None,
        *,
        default_directory: Path | None = None,
        marker_names: MarkerNames | None = None,
    ) -> None:
        self.logger = get_logger("rendering")
        self.default_directory = default_directory or DEFAULT_TEMPLATES_DIRECTORY
        for logical, file_name in TEMPLATE_FILES.items():
            if not (self.default_directory / file_name).is_file():
                raise TemplateConfigError(
                    f"Default '{logical}' template not found at {self.default_directory / file_name}"
                )

        self.templates_directory = templates_directory
        if templates_directory is not None and not templates_directory.is_dir():
            self.logger.warning("Templates directory %s does not exist; using defaults", templates_directory)
            self.templates_directory = None

        self.markers = marker_names or MarkerNames()
        self._default_env = self._create_env([self.default_directory])
        directories = [self.default_directory]
        if self.templates_directory is not None:
            directories.insert(0, self.templates_directory)
        self._env = self._create_env(directories)
        self._templates: Dict[str, Template] = {
            logical: self._load_template(logical, file_name) for logical, file_name in TEMPLATE_FILES.items()
        }

    def build_event_context(
        self,
        event: EventMetadata,
        documentation: TypeDocumentation,
        options: GeneratorOptions | None = None,
    ) -> Dict[str, Any]:
        source_link = None
        base_url = options.source_base_url if options is not None else None
        if base_url and event.source_file:
            source_link = f"{base_url.rstrip('/')}/{event.source_file}"
            if event.source_line:
                source_link += f"#L{event.source_line}"

        return {
            "event": {
                "name": event.event_name,
                "display_name": display_name(event.event_name),
                "full_type_name": event.full_type_name,
                "namespace": event.namespace,
                "topic_name": event.topic_name,
                "domain": event.domain,
                "version": event.version,
                "visibility": event.visibility,
                "is_internal": event.is_internal,
                "is_deprecated": event.obsolete_message is not None,
                "deprecation_message": event.obsolete_message or "",
                "summary": documentation.summary or NO_DESCRIPTION,
                "remarks": documentation.remarks,
                "example": documentation.example,
                "properties": [self._event_property(prop) for prop in event.properties],
                "partition_keys": [
                    {
                        "name": key.name,
                        "type_name": key.type_name,
                        "description": key.description,
                        "order": key.order,
                        "is_from_parameter": key.is_from_parameter,
                    }
                    for key in event.partition_keys
                ],
                "total_size_bytes": event.total_size.size_bytes,
                "total_size_accurate": event.total_size.is_accurate,
                "file_name": event.file_name,
                "source_file": event.source_file,
                "source_line": event.source_line,
                "source_link": source_link,
            },
            "generated_by": GENERATED_BY,
        }

    def build_schema_context(
        self,
        schema_type: Any,
        lookup: DocumentationLookup,
        calculator: PayloadSizeCalculator,
    ) -> Dict[str, Any]:
        documentation = lookup.get_description(schema_type)
        properties = []
        for prop in type_properties(schema_type):
            links = _schema_links(schema_types_of(prop.annotation), "")
            size = calculator.estimate_property_size(prop.owner, prop.name, prop.annotation)
            required = find_marker(annotation_metadata(prop.annotation), self.markers.required) is not None
            properties.append(
                {
                    "name": prop.name,
                    "type_name": friendly_type_name(prop.annotation),
                    "is_required": required or is_required_hint(prop.annotation),
                    "is_complex": is_complex(prop.annotation),
                    "schema_link": links[0]["path"] if len(links) == 1 else None,
                    "schema_links": links,
                    "description": documentation.description_for(prop.name),
                    "size_bytes": size.size_bytes,
                    "is_accurate": size.is_accurate,
                    "size_warning": size.warning,
                }
            )

        total = calculator.estimate_size(schema_type)
        clean_name = clean_type_name(schema_type)
        return {
            "schema": {
                "name": friendly_type_name(schema_type),
                "clean_name": clean_name,
                "namespace": getattr(schema_type, "__module__", "") or "",
                "summary": documentation.summary or NO_DESCRIPTION,
                "remarks": documentation.remarks,
                "example": documentation.example,
                "properties": properties,
                "total_size_bytes": total.size_bytes,
                "total_size_accurate": total.is_accurate,
                "file_name": f"{safe_file_name(clean_name)}.md",
            },
            "generated_by": GENERATED_BY,
        }

    def render_event(
        self,
        event: EventMetadata,
        documentation: TypeDocumentation,
        options: GeneratorOptions | None = None,
    ) -> RenderedDocument:
        context = self.build_event_context(event, documentation, options)
        content = self.render("event", context)
        return RenderedDocument(file_name=event.file_name, relative_path=event.file_name, content=content)

    def render_schema(
        self,
        schema_type: Any,
        lookup: DocumentationLookup,
        calculator: PayloadSizeCalculator,
    ) -> RenderedDocument:
        context = self.build_schema_context(schema_type, lookup, calculator)
        file_name = context["schema"]["file_name"]
        content = self.render("schema", context)
        return RenderedDocument(
            file_name=file_name,
            relative_path=f"{SCHEMAS_DIRECTORY}/{file_name}",
            content=content,
        )

    def render(self, logical_name: str, context: Dict[str, Any]) -> str:
        template = self._templates.get(logical_name)
        if template is None:
            raise TemplateConfigError(f"Unknown template '{logical_name}'")
        return template.render(**context).rstrip() + "\n"

    def _event_property(self, prop: EventPropertyMetadata) -> Dict[str, Any]:
        targets = schema_types_of(prop.property_type) if prop.is_complex_type else []
        links = _schema_links(targets, f"{SCHEMAS_DIRECTORY}/")
        return {
            "name": prop.name,
            "type_name": prop.type_name,
            "is_required": prop.is_required,
            "is_complex": prop.is_complex_type,
            "is_partition_key": prop.is_partition_key,
            "partition_key_order": prop.partition_key_order,
            "description": prop.description,
            "size_bytes": prop.estimated_size_bytes,
            "is_accurate": prop.is_accurate,
            "size_warning": prop.size_warning,
            "schema_link": links[0]["path"] if len(links) == 1 else None,
            "schema_links": links,
        }

    def _load_template(self, logical: str, file_name: str) -> Template:
        try:
            return self._env.get_template(file_name)
        except TemplateSyntaxError as exc:
            if self.templates_directory is None:
                raise TemplateConfigError(f"Default '{logical}' template is invalid: {exc}") from exc
            self.logger.warning(
                "Custom template %s is invalid (%s); using the default", file_name, exc.message
            )
        except TemplateNotFound as exc:
            raise TemplateConfigError(f"Template '{logical}' could not be resolved") from exc
        return self._default_env.get_template(file_name)

    @staticmethod
    def _create_env(directories: List[Path]) -> SandboxedEnvironment:
        env = SandboxedEnvironment(
            loader=ChoiceLoader([FileSystemLoader(str(directory)) for directory in directories]),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        env.filters["display_name"] = display_name
        env.filters["safe_file_name"] = safe_file_name
        env.filters["kebab"] = kebab_case
        env.filters["format_bytes"] = format_bytes
        env.filters["md_escape"] = md_escape
        return env


def _schema_links(targets: List[Any], prefix: str) -> List[Dict[str, str]]:
    return [
        {"name": friendly_type_name(target), "path": f"{prefix}{safe_file_name(clean_type_name(target))}.md"}
        for target in targets
    ]


def copy_default_templates(
    target: Path, *, overwrite: bool = False, source: Path | None = None
) -> List[Path]:
    """Copy the built-in templates into `target` so they can be customised.

    Refuses to touch a directory that already holds ``*.j2`` templates unless
    `overwrite` is set.
    """
    source = source or DEFAULT_TEMPLATES_DIRECTORY
    target.mkdir(parents=True, exist_ok=True)
    existing = sorted(path.name for path in target.glob("*.j2"))
    if existing and not overwrite:
        raise FileExistsError(
            f"{target} already contains templates ({', '.join(existing)}); use --force to overwrite"
        )

    written: List[Path] = []
    for file_name in TEMPLATE_FILES.values():
        template = source / file_name
        if not template.is_file():
            raise TemplateConfigError(f"Default template not found: {template}")
        destination = target / file_name
        destination.write_text(template.read_text(encoding="utf-8"), encoding="utf-8")
        written.append(destination)
    return written


__all__ = [
    "DEFAULT_TEMPLATES_DIRECTORY",
    "SCHEMAS_DIRECTORY",
    "TEMPLATE_FILES",
    "TemplateRenderer",
    "copy_default_templates",
]
