"""Configuration loading for eventdocs (.eventdocs.yml) and generator options."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from .errors import ConfigError

CONFIG_FILE_NAME = ".eventdocs.yml"
DEFAULT_OUTPUT_DIRECTORY = "./docs/events/"
DEFAULT_SIDEBAR_FILE = "events-sidebar.json"
DEFAULT_ENVIRONMENT_PLACEHOLDER = "{env}"
DEFAULT_BOUNDARY_SEGMENTS: Tuple[str, ...] = ("Contracts", "IntegrationEvents", "DomainEvents")
SERIALIZATION_FORMATS: Tuple[str, ...] = ("json", "binary")


@dataclass(frozen=True)
class GeneratorOptions:
    """Run configuration handed explicitly to every pipeline component."""

    module_paths: Tuple[Path, ...]
    output_directory: Path
    documentation_paths: Tuple[Path, ...] = ()
    sidebar_file_name: str = DEFAULT_SIDEBAR_FILE
    templates_directory: Optional[Path] = None
    source_base_url: Optional[str] = None
    serialization_format: str = "json"
    environment_placeholder: str = DEFAULT_ENVIRONMENT_PLACEHOLDER
    boundary_segments: Tuple[str, ...] = DEFAULT_BOUNDARY_SEGMENTS
    default_string_length: int = 0
    default_collection_count: int = 10
    max_depth: int = 32
    load_timeout: float = 30.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "module_paths", tuple(Path(p) for p in self.module_paths))
        object.__setattr__(
            self, "documentation_paths", tuple(Path(p) for p in self.documentation_paths)
        )
        object.__setattr__(self, "output_directory", Path(self.output_directory))
        if self.templates_directory is not None:
            object.__setattr__(self, "templates_directory", Path(self.templates_directory))
        object.__setattr__(self, "boundary_segments", tuple(self.boundary_segments))

        fmt = self.serialization_format.lower()
        if fmt not in SERIALIZATION_FORMATS:
            supported = ", ".join(SERIALIZATION_FORMATS)
            raise ConfigError(
                f"Unknown serialization format: '{self.serialization_format}'. Supported: {supported}."
            )
        object.__setattr__(self, "serialization_format", fmt)

        if not self.sidebar_file_name.strip():
            raise ConfigError("Sidebar file name must not be empty")
        if self.default_string_length < 0:
            raise ConfigError("default_string_length must be zero or positive")
        if self.default_collection_count < 1:
            raise ConfigError("default_collection_count must be at least 1")
        if self.max_depth < 1:
            raise ConfigError("max_depth must be at least 1")
        if self.load_timeout <= 0:
            raise ConfigError("load_timeout must be positive")

    def sidebar_path(self) -> Path:
        """Return the navigation manifest location inside the output directory."""
        return self.output_directory / Path(self.sidebar_file_name).name

    def ensure_output_directory(self) -> None:
        self.output_directory.mkdir(parents=True, exist_ok=True)


@dataclass
class GeneratorSettings:
    """Generator defaults declared under the `generator:` key of .eventdocs.yml."""

    output: Optional[str] = None
    sidebar_file: Optional[str] = None
    templates_dir: Optional[Path] = None
    source_url: Optional[str] = None
    serialization_format: Optional[str] = None
    environment_placeholder: Optional[str] = None
    boundary_segments: List[str] = field(default_factory=list)
    documentation: List[str] = field(default_factory=list)
    default_string_length: Optional[int] = None
    default_collection_count: Optional[int] = None
    max_depth: Optional[int] = None
    load_timeout: Optional[float] = None


@dataclass
class EventDocsConfig:
    """Represents the settings defined in .eventdocs.yml."""

    root: Path
    generator: GeneratorSettings = field(default_factory=GeneratorSettings)


def load_config(config_path: Path) -> EventDocsConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return EventDocsConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILE_NAME} must contain a mapping at the root")

    generator_data = _as_dict(data.get("generator"))
    settings = GeneratorSettings()
    if generator_data:
        templates_dir = _as_str(generator_data.get("templates_dir"))
        settings = GeneratorSettings(
            output=_as_str(generator_data.get("output")),
            sidebar_file=_as_str(generator_data.get("sidebar_file")),
            templates_dir=root / templates_dir if templates_dir else None,
            source_url=_as_str(generator_data.get("source_url")),
            serialization_format=_as_str(generator_data.get("serialization_format")),
            environment_placeholder=_as_str(generator_data.get("environment_placeholder")),
            boundary_segments=_as_str_list(generator_data.get("boundary_segments")),
            documentation=_as_str_list(generator_data.get("documentation")),
            default_string_length=_as_int(generator_data.get("default_string_length")),
            default_collection_count=_as_int(generator_data.get("default_collection_count")),
            max_depth=_as_int(generator_data.get("max_depth")),
            load_timeout=_as_float(generator_data.get("load_timeout")),
        )

    return EventDocsConfig(root=root, generator=settings)


def resolve_options(
    config: EventDocsConfig,
    *,
    module_paths: Sequence[str],
    documentation_paths: Sequence[str] = (),
    output: Optional[str] = None,
    sidebar_file: Optional[str] = None,
    templates: Optional[str] = None,
    source_url: Optional[str] = None,
    serialization_format: Optional[str] = None,
) -> GeneratorOptions:
    """Merge explicit (command-line) values over configuration file defaults."""
    settings = config.generator
    templates_directory: Optional[Path] = Path(templates) if templates else settings.templates_dir

    kwargs: Dict[str, Any] = {
        "module_paths": tuple(Path(p) for p in module_paths),
        "documentation_paths": tuple(Path(p) for p in [*settings.documentation, *documentation_paths]),
        "output_directory": Path(output or settings.output or DEFAULT_OUTPUT_DIRECTORY),
        "sidebar_file_name": sidebar_file or settings.sidebar_file or DEFAULT_SIDEBAR_FILE,
        "templates_directory": templates_directory,
        "source_base_url": source_url or settings.source_url,
        "serialization_format": serialization_format or settings.serialization_format or "json",
    }
    if settings.environment_placeholder:
        kwargs["environment_placeholder"] = settings.environment_placeholder
    if settings.boundary_segments:
        kwargs["boundary_segments"] = tuple(settings.boundary_segments)
    if settings.default_string_length is not None:
        kwargs["default_string_length"] = settings.default_string_length
    if settings.default_collection_count is not None:
        kwargs["default_collection_count"] = settings.default_collection_count
    if settings.max_depth is not None:
        kwargs["max_depth"] = settings.max_depth
    if settings.load_timeout is not None:
        kwargs["load_timeout"] = settings.load_timeout

    return GeneratorOptions(**kwargs)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILE_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigError",
    "DEFAULT_BOUNDARY_SEGMENTS",
    "DEFAULT_OUTPUT_DIRECTORY",
    "DEFAULT_SIDEBAR_FILE",
    "EventDocsConfig",
    "GeneratorOptions",
    "GeneratorSettings",
    "load_config",
    "resolve_options",
]
