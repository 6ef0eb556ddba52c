"""Pipeline orchestration for the generate and copy-templates flows."""

from __future__ import annotations

import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Set

from .config import GeneratorOptions
from .discovery.events import EventDiscoverer
from .discovery.types import (
    REFLECTION_ERRORS,
    collect_complex_types,
    collect_nested_complex_types,
    schema_summary,
)
from .documentation import DocumentationLookup, build_lookup, discover_documentation_files
from .errors import EventDocsError, InputError, ModuleLoadError, ModuleLoadTimeout
from .loader import LoadedModule, ModuleLoader
from .logging import get_logger
from .models import EventMetadata, RenderedDocument, SchemaSummary
from .navigation import SidebarGenerator
from .rendering import SCHEMAS_DIRECTORY, TemplateRenderer, copy_default_templates
from .sizing import PayloadSizeCalculator, calculator_for

MAX_WRITE_WORKERS = 8


@dataclass
class GenerateOutcome:
    """Result of a documentation generation run."""

    events: List[EventMetadata]
    schemas: List[SchemaSummary]
    written_files: List[Path]
    sidebar_path: Path
    processed_modules: List[str]
    failed_modules: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class _ModuleBatch:
    events: List[EventMetadata] = field(default_factory=list)
    documents: List[RenderedDocument] = field(default_factory=list)
    schemas: List[SchemaSummary] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class Orchestrator:
    """Sequences loading, discovery, rendering and writing across modules.

    Modules are processed one at a time; everything that needs a live type
    (metadata, schema expansion, rendering) happens while that module's
    import context is held, and only detached results are kept afterwards.
    """

    def __init__(
        self,
        loader: ModuleLoader | None = None,
        renderer_factory: Callable[[Path | None], TemplateRenderer] | None = None,
        lookup: DocumentationLookup | None = None,
    ) -> None:
        self.loader = loader
        self.renderer_factory = renderer_factory or TemplateRenderer
        self.lookup = lookup
        self.logger = get_logger("orchestrator")

    def run_generate(self, options: GeneratorOptions) -> GenerateOutcome:
        """Generate event, schema and navigation documents for `options.module_paths`."""
        self._validate_inputs(options)
        renderer = self.renderer_factory(options.templates_directory)

        documentation_files = discover_documentation_files(options.module_paths, options.documentation_paths)
        lookup = self.lookup or build_lookup(documentation_files)
        calculator = calculator_for(options)
        self.logger.debug("Estimating payload sizes for %s serialization", calculator.format_name)
        discoverer = EventDiscoverer(options, lookup=lookup, calculator=calculator)
        loader = self.loader or ModuleLoader(timeout=options.load_timeout)

        warnings: List[str] = list(_lookup_warnings(lookup))
        events: Dict[str, EventMetadata] = {}
        schemas: Dict[str, SchemaSummary] = {}
        documents: Dict[str, RenderedDocument] = {}
        processed: List[str] = []
        failed: List[str] = []

        for module_path in options.module_paths:
            self.logger.info("Processing %s", module_path)
            try:
                with loader.open(module_path, timeout=options.load_timeout) as module:
                    batch = self._process_module(
                        module,
                        discoverer,
                        renderer,
                        lookup,
                        calculator,
                        options,
                        known_events=set(events),
                        known_schemas=set(schemas),
                    )
            except ModuleLoadTimeout as exc:
                self._record_failure(warnings, failed, module_path, f"timed out: {exc}")
                continue
            except ModuleLoadError as exc:
                self._record_failure(warnings, failed, module_path, str(exc))
                continue
            except (Exception, SystemExit) as exc:  # one broken module must not abort the run
                self._record_failure(warnings, failed, module_path, f"{exc.__class__.__name__}: {exc}")
                continue

            processed.append(str(module_path))
            warnings.extend(batch.warnings)
            for event in batch.events:
                events[event.full_type_name] = event
            for schema in batch.schemas:
                schemas[schema.clean_name] = schema
            for document in batch.documents:
                documents[document.relative_path] = document

        if not processed:
            raise EventDocsError("No input module could be processed; see warnings above")

        ordered_events = [events[name] for name in sorted(events)]
        ordered_schemas = [schemas[name] for name in sorted(schemas)]
        if not ordered_events:
            self.logger.warning("No events discovered; writing an empty navigation manifest")

        options.ensure_output_directory()
        written = self._write_documents(options.output_directory, [documents[key] for key in sorted(documents)])
        sidebar = SidebarGenerator(options.boundary_segments)
        sidebar_path = options.sidebar_path()
        write_text_atomic(sidebar_path, sidebar.render(sidebar.build(ordered_events, ordered_schemas)))

        self.logger.info(
            "Generated %d event document(s) and %d schema document(s) from %d module(s)",
            len(ordered_events),
            len(ordered_schemas),
            len(processed),
        )
        return GenerateOutcome(
            events=ordered_events,
            schemas=ordered_schemas,
            written_files=written,
            sidebar_path=sidebar_path,
            processed_modules=processed,
            failed_modules=failed,
            warnings=warnings,
        )

    def run_copy_templates(self, target: Path, *, overwrite: bool = False) -> List[Path]:
        """Copy the default templates into `target` for customisation."""
        written = copy_default_templates(target, overwrite=overwrite)
        for path in written:
            self.logger.info("Wrote %s", path)
        return written

    def _process_module(
        self,
        module: LoadedModule,
        discoverer: EventDiscoverer,
        renderer: TemplateRenderer,
        lookup: DocumentationLookup,
        calculator: PayloadSizeCalculator,
        options: GeneratorOptions,
        *,
        known_events: Set[str],
        known_schemas: Set[str],
    ) -> _ModuleBatch:
        batch = _ModuleBatch(warnings=list(module.warnings))
        result = discoverer.discover(module)
        batch.warnings.extend(result.warnings)
        self.logger.info("%s: %d event(s) discovered", module.name, len(result.events))

        fresh: List[EventMetadata] = []
        for event in result.events:
            if event.full_type_name in known_events:
                batch.warnings.append(f"Duplicate event {event.full_type_name} in {module.name} ignored")
                continue
            known_events.add(event.full_type_name)
            documentation = lookup.get_description(event.event_type)
            batch.documents.append(renderer.render_event(event, documentation, options))
            fresh.append(event)

        for schema_type in self._schema_types(fresh):
            summary = schema_summary(schema_type)
            if summary.clean_name in known_schemas:
                continue
            try:
                document = renderer.render_schema(schema_type, lookup, calculator)
            except REFLECTION_ERRORS as exc:
                batch.warnings.append(f"Schema {summary.clean_name} skipped: {exc.__class__.__name__}: {exc}")
                continue
            known_schemas.add(summary.clean_name)
            batch.schemas.append(summary)
            batch.documents.append(document)

        batch.events = [event.detached() for event in fresh]
        return batch

    @staticmethod
    def _schema_types(events: Iterable[EventMetadata]) -> List[Any]:
        properties = [prop for event in events for prop in event.properties]
        accumulated: Set[Any] = set(collect_complex_types(properties))
        for root in list(accumulated):
            collect_nested_complex_types(root, accumulated)
        return sorted(accumulated, key=lambda tp: schema_summary(tp).clean_name)

    def _write_documents(self, output_directory: Path, documents: List[RenderedDocument]) -> List[Path]:
        if any(document.relative_path.startswith(f"{SCHEMAS_DIRECTORY}/") for document in documents):
            (output_directory / SCHEMAS_DIRECTORY).mkdir(exist_ok=True)
        if not documents:
            return []
        workers = min(MAX_WRITE_WORKERS, len(documents))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(
                executor.map(
                    lambda document: write_text_atomic(output_directory / document.relative_path, document.content),
                    documents,
                )
            )

    def _record_failure(self, warnings: List[str], failed: List[str], module_path: Path, reason: str) -> None:
        message = f"Skipping {module_path}: {reason}"
        self.logger.warning(message)
        warnings.append(message)
        failed.append(str(module_path))

    @staticmethod
    def _validate_inputs(options: GeneratorOptions) -> None:
        if not options.module_paths:
            raise InputError("No input modules provided")
        missing = [str(path) for path in options.module_paths if not Path(path).exists()]
        if missing:
            raise InputError(f"Input module not found: {', '.join(missing)}")


def write_text_atomic(path: Path, content: str) -> Path:
    """Write `content` to a temporary sibling file and move it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        newline="\n",
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as handle:
        handle.write(content)
        temp_name = handle.name
    try:
        os.replace(temp_name, path)
    except OSError:
        Path(temp_name).unlink(missing_ok=True)
        raise
    return path


def _lookup_warnings(lookup: DocumentationLookup) -> List[str]:
    collected = list(getattr(lookup, "warnings", []) or [])
    for nested in getattr(lookup, "lookups", []) or []:
        collected.extend(_lookup_warnings(nested))
    return collected


__all__ = ["GenerateOutcome", "Orchestrator", "write_text_atomic"]
