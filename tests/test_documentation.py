"""Tests for docstring and YAML documentation lookups."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from eventdocs.documentation import (
    NO_DESCRIPTION,
    DocstringLookup,
    YamlDocumentationLookup,
    build_lookup,
    discover_documentation_files,
    parse_docstring,
)


@dataclass
class Shipment:
    """Shipment handed to a carrier.

    Carriers are notified asynchronously.

    Attributes:
        tracking_code: Carrier tracking code,
            unique per carrier.
        weight (float): Gross weight in kilograms.

    Example:
        Shipment(tracking_code="1Z999", weight=1.5)
    """

    tracking_code: str
    weight: float


@dataclass
class Undocumented:
    value: int


def test_parse_docstring_sections() -> None:
    documentation = parse_docstring(Shipment.__doc__ or "")

    assert documentation.summary == "Shipment handed to a carrier."
    assert documentation.remarks == "Carriers are notified asynchronously."
    assert documentation.example == 'Shipment(tracking_code="1Z999", weight=1.5)'
    assert documentation.property_descriptions == {
        "tracking_code": "Carrier tracking code, unique per carrier.",
        "weight": "Gross weight in kilograms.",
    }


def test_docstring_lookup_ignores_generated_dataclass_docs() -> None:
    lookup = DocstringLookup()

    assert lookup.get_description(Undocumented).summary == ""
    assert lookup.get_description(Undocumented).description_for("value") == NO_DESCRIPTION


def test_yaml_lookup_by_qualified_name(tmp_path: Path) -> None:
    docs = tmp_path / "shipping.yml"
    docs.write_text(
        f"""
{Shipment.__module__}.Shipment:
  summary: Parcel leaving the warehouse.
  properties:
    weight: Weight including packaging.
""",
        encoding="utf-8",
    )

    documentation = YamlDocumentationLookup([docs]).get_description(Shipment)

    assert documentation.summary == "Parcel leaving the warehouse."
    assert documentation.description_for("weight") == "Weight including packaging."


def test_yaml_overrides_docstrings_field_by_field(tmp_path: Path) -> None:
    docs = tmp_path / "shipping.yml"
    docs.write_text(
        """
types:
  Shipment:
    properties:
      weight: Weight including packaging.
""",
        encoding="utf-8",
    )

    documentation = build_lookup([docs]).get_description(Shipment)

    assert documentation.summary == "Shipment handed to a carrier."
    assert documentation.description_for("weight") == "Weight including packaging."
    assert documentation.description_for("tracking_code") == "Carrier tracking code, unique per carrier."


def test_invalid_yaml_is_reported_not_raised(tmp_path: Path) -> None:
    docs = tmp_path / "broken.yml"
    docs.write_text("Shipment: [unclosed\n", encoding="utf-8")

    lookup = YamlDocumentationLookup([docs])

    assert lookup.warnings and "broken.yml" in lookup.warnings[0]
    assert lookup.get_description(Shipment).summary == ""


def test_discover_documentation_files(tmp_path: Path) -> None:
    module = tmp_path / "shipping.py"
    module.write_text("", encoding="utf-8")
    (tmp_path / "shipping.yml").write_text("{}", encoding="utf-8")
    package = tmp_path / "billing"
    package.mkdir()
    (package / "docs.yaml").write_text("{}", encoding="utf-8")
    explicit = tmp_path / "extra.yml"
    explicit.write_text("{}", encoding="utf-8")

    found = discover_documentation_files([module, package], [explicit, tmp_path / "missing.yml"])

    assert found == [explicit, tmp_path / "shipping.yml", package / "docs.yaml"]
