"""Tests for eventdocs.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from eventdocs.config import (
    DEFAULT_BOUNDARY_SEGMENTS,
    DEFAULT_SIDEBAR_FILE,
    EventDocsConfig,
    GeneratorOptions,
    load_config,
    resolve_options,
)
from eventdocs.errors import ConfigError


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, EventDocsConfig)
    assert config.root == tmp_path.resolve()
    assert config.generator.output is None
    assert config.generator.boundary_segments == []
    assert config.generator.templates_dir is None


def test_load_config_parses_generator_section(tmp_path: Path) -> None:
    config_file = tmp_path / ".eventdocs.yml"
    config_file.write_text(
        """
generator:
  output: "site/events"
  sidebar_file: "nav.json"
  templates_dir: "docs/templates"
  source_url: "https://example.com/blob/main"
  serialization_format: "binary"
  environment_placeholder: "{stage}"
  boundary_segments: [Contracts, Messages]
  documentation:
    - "docs/events.yml"
  default_collection_count: 5
  max_depth: 8
  load_timeout: 12
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    generator = config.generator
    assert generator.output == "site/events"
    assert generator.sidebar_file == "nav.json"
    assert generator.templates_dir == tmp_path.resolve() / "docs/templates"
    assert generator.source_url == "https://example.com/blob/main"
    assert generator.serialization_format == "binary"
    assert generator.environment_placeholder == "{stage}"
    assert generator.boundary_segments == ["Contracts", "Messages"]
    assert generator.documentation == ["docs/events.yml"]
    assert generator.default_collection_count == 5
    assert generator.max_depth == 8
    assert generator.load_timeout == 12.0


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    (tmp_path / ".eventdocs.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_reports_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".eventdocs.yml").write_text("generator: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(tmp_path)


def test_resolve_options_prefers_explicit_values(tmp_path: Path) -> None:
    (tmp_path / ".eventdocs.yml").write_text(
        """
generator:
  output: "from-config"
  serialization_format: "binary"
  documentation: ["config-docs.yml"]
""",
        encoding="utf-8",
    )
    config = load_config(tmp_path)

    options = resolve_options(
        config,
        module_paths=["a.py", "b.py"],
        documentation_paths=["cli-docs.yml"],
        output="from-cli",
        serialization_format="json",
    )

    assert options.module_paths == (Path("a.py"), Path("b.py"))
    assert options.output_directory == Path("from-cli")
    assert options.serialization_format == "json"
    assert options.documentation_paths == (Path("config-docs.yml"), Path("cli-docs.yml"))
    assert options.sidebar_file_name == DEFAULT_SIDEBAR_FILE
    assert options.boundary_segments == DEFAULT_BOUNDARY_SEGMENTS


def test_resolve_options_falls_back_to_config(tmp_path: Path) -> None:
    (tmp_path / ".eventdocs.yml").write_text(
        "generator:\n  output: from-config\n  serialization_format: binary\n",
        encoding="utf-8",
    )

    options = resolve_options(load_config(tmp_path), module_paths=["a.py"])

    assert options.output_directory == Path("from-config")
    assert options.serialization_format == "binary"


def test_generator_options_rejects_unknown_format(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Unknown serialization format"):
        GeneratorOptions(module_paths=(), output_directory=tmp_path, serialization_format="protobuf")


def test_generator_options_normalises_format_case(tmp_path: Path) -> None:
    options = GeneratorOptions(module_paths=(), output_directory=tmp_path, serialization_format="JSON")

    assert options.serialization_format == "json"


def test_sidebar_path_stays_inside_output_directory(tmp_path: Path) -> None:
    options = GeneratorOptions(
        module_paths=(), output_directory=tmp_path / "out", sidebar_file_name="../nav/sidebar.json"
    )

    assert options.sidebar_path() == tmp_path / "out" / "sidebar.json"
