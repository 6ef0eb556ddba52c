"""Tests for template rendering and template management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Annotated, List

import pytest

from eventdocs.config import GeneratorOptions
from eventdocs.documentation import DocstringLookup, TypeDocumentation
from eventdocs.errors import TemplateConfigError
from eventdocs.markers import MaxLength
from eventdocs.models import EventMetadata, EventPropertyMetadata, PartitionKeyMetadata, PayloadSizeResult
from eventdocs.rendering import TemplateRenderer, copy_default_templates
from eventdocs.rendering.filters import format_bytes, md_escape
from eventdocs.sizing import JsonPayloadSizeCalculator


@dataclass
class Money:
    """Monetary amount.

    Attributes:
        amount: Decimal value.
        currency: ISO 4217 code.
    """

    amount: Decimal
    currency: Annotated[str, MaxLength(3)]


@dataclass
class Basket:
    lines: List[Money]


def _event(**overrides: object) -> EventMetadata:
    values: dict[str, object] = {
        "event_name": "PaymentReceived",
        "full_type_name": "shop.billing.contracts.PaymentReceived",
        "namespace": "shop.billing.contracts",
        "topic_name": "{env}.billing.public.payments.v1",
        "domain": "billing",
        "version": "v1",
        "is_internal": False,
        "properties": (
            EventPropertyMetadata(
                name="tenant_id",
                type_name="str",
                property_type=str,
                is_required=True,
                is_complex_type=False,
                is_partition_key=True,
                partition_key_order=0,
                description="Tenant that owns the payment.",
                estimated_size_bytes=38,
                is_accurate=True,
            ),
            EventPropertyMetadata(
                name="total",
                type_name="Money",
                property_type=Money,
                is_required=True,
                is_complex_type=True,
                is_partition_key=False,
                partition_key_order=None,
                description="No description available",
                estimated_size_bytes=44,
                is_accurate=True,
            ),
        ),
        "partition_keys": (
            PartitionKeyMetadata(
                name="tenant_id",
                type_name="str",
                description="Tenant that owns the payment.",
                order=0,
                is_from_parameter=False,
            ),
        ),
        "total_size": PayloadSizeResult(105, True),
        "source_file": "shop/billing/contracts.py",
        "source_line": 12,
    }
    values.update(overrides)
    return EventMetadata(**values)


def test_render_event_document() -> None:
    renderer = TemplateRenderer()
    options = GeneratorOptions(
        module_paths=(), output_directory=Path("out"), source_base_url="https://example.com/src/"
    )

    document = renderer.render_event(_event(), TypeDocumentation(summary="Published when a payment settles."), options)

    assert document.relative_path == "shop.billing.contracts.PaymentReceived.md"
    content = document.content
    assert content.startswith("# Payment Received\n")
    assert "Published when a payment settles." in content
    assert "| Topic | `{env}.billing.public.payments.v1` |" in content
    assert "[shop/billing/contracts.py](https://example.com/src/shop/billing/contracts.py#L12)" in content
    assert "| 0 | `tenant_id` | `str` | Tenant that owns the payment. |" in content
    assert f"](schemas/{Money.__module__}.Money.md)" in content
    assert content.endswith("</sub>\n")


def test_render_event_without_keys_or_docs() -> None:
    renderer = TemplateRenderer()

    content = renderer.render_event(
        _event(partition_keys=(), obsolete_message="Use PaymentSettled"), TypeDocumentation()
    ).content

    assert "This event does not declare partition keys." in content
    assert "No description available" in content
    assert "::: warning Deprecated\nUse PaymentSettled\n:::" in content
    assert "| Source |" not in content


def test_render_schema_document() -> None:
    renderer = TemplateRenderer()

    document = renderer.render_schema(Money, DocstringLookup(), JsonPayloadSizeCalculator())

    assert document.relative_path == f"schemas/{Money.__module__}.Money.md"
    assert document.content.startswith("# Money\n")
    assert "Monetary amount." in document.content
    assert "| `currency` | `str` | Yes | 5 | ISO 4217 code. |" in document.content
    assert "44 bytes" in document.content


def test_schema_links_to_nested_schema() -> None:
    renderer = TemplateRenderer()

    context = renderer.build_schema_context(Basket, DocstringLookup(), JsonPayloadSizeCalculator())

    assert context["schema"]["properties"][0]["schema_link"] == f"{Money.__module__}.Money.md"
    assert context["schema"]["total_size_accurate"] is False


def test_custom_template_overrides_default(tmp_path: Path) -> None:
    (tmp_path / "event.md.j2").write_text("Custom {{ event.name }}\n", encoding="utf-8")
    renderer = TemplateRenderer(tmp_path)

    assert renderer.render_event(_event(), TypeDocumentation()).content == "Custom PaymentReceived\n"
    schema = renderer.render_schema(Money, DocstringLookup(), JsonPayloadSizeCalculator())
    assert schema.content.startswith("# Money\n")


def test_invalid_custom_template_falls_back(
    tmp_path: Path, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "event.md.j2").write_text("{% if %}broken\n", encoding="utf-8")
    monkeypatch.setattr(logging.getLogger("eventdocs"), "propagate", True)

    with caplog.at_level(logging.WARNING, logger="eventdocs.rendering"):
        renderer = TemplateRenderer(tmp_path)

    assert renderer.render_event(_event(), TypeDocumentation()).content.startswith("# Payment Received\n")
    assert any("is invalid" in record.getMessage() for record in caplog.records)


def test_missing_custom_directory_uses_defaults(tmp_path: Path) -> None:
    renderer = TemplateRenderer(tmp_path / "missing")

    assert renderer.templates_directory is None
    assert renderer.render_event(_event(), TypeDocumentation()).content.startswith("# Payment Received")


def test_missing_default_template_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(TemplateConfigError):
        TemplateRenderer(default_directory=tmp_path)


def test_copy_default_templates_refuses_existing(tmp_path: Path) -> None:
    target = tmp_path / "templates"
    written = copy_default_templates(target)
    assert sorted(path.name for path in written) == ["event.md.j2", "schema.md.j2"]

    (target / "event.md.j2").write_text("edited", encoding="utf-8")
    with pytest.raises(FileExistsError):
        copy_default_templates(target)
    assert (target / "event.md.j2").read_text(encoding="utf-8") == "edited"

    copy_default_templates(target, overwrite=True)
    assert (target / "event.md.j2").read_text(encoding="utf-8") != "edited"


def test_filters() -> None:
    assert format_bytes(1) == "1 byte"
    assert format_bytes(512) == "512 bytes"
    assert format_bytes(1536) == "1.5 KB"
    assert md_escape("a|b\nc") == "a\\|b c"
    assert md_escape(None) == ""
