"""Integration tests for the generate pipeline."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from eventdocs.errors import EventDocsError, InputError
from eventdocs.orchestrator import Orchestrator, write_text_atomic
from tests._fixtures.module_builder import BILLING_EVENTS, ModuleBuilder

TREE_EVENTS = {
    "catalog/__init__.py": "",
    "catalog/contracts.py": '''
        from dataclasses import dataclass, field
        from typing import List, Optional

        from eventdocs.markers import EventTopic


        @dataclass
        class Node:
            """A category in the catalog tree."""

            name: str
            children: List["Node"] = field(default_factory=list)
            parent: Optional["Node"] = None


        @EventTopic("category-trees")
        @dataclass
        class CategoryTreePublished:
            root: Node
    ''',
}


def _snapshot(directory: Path) -> dict[str, bytes]:
    return {
        path.relative_to(directory).as_posix(): path.read_bytes()
        for path in sorted(directory.rglob("*"))
        if path.is_file()
    }


def test_generate_writes_event_documents_and_sidebar(module_builder: ModuleBuilder) -> None:
    module_builder.write(BILLING_EVENTS)
    options = module_builder.options("shop")

    outcome = Orchestrator().run_generate(options)

    assert [event.topic_name for event in outcome.events] == ["{env}.billing.public.payments.v1"]
    assert outcome.events[0].event_type is None
    assert outcome.processed_modules == [str(module_builder.path("shop"))]
    document = options.output_directory / "shop.billing.contracts.events.PaymentReceived.md"
    assert document in outcome.written_files
    assert "`{env}.billing.public.payments.v1`" in document.read_text(encoding="utf-8")

    sidebar = json.loads(outcome.sidebar_path.read_text(encoding="utf-8"))
    assert sidebar == [
        {
            "text": "Billing",
            "link": None,
            "collapsed": False,
            "items": [
                {"text": "Payment Received", "link": "/shop.billing.contracts.events.PaymentReceived"}
            ],
        }
    ]
    assert "shop" not in sys.modules


def test_self_referential_schema_is_documented_once(module_builder: ModuleBuilder) -> None:
    module_builder.write(TREE_EVENTS)
    options = module_builder.options("catalog")

    outcome = Orchestrator().run_generate(options)

    assert [schema.clean_name for schema in outcome.schemas] == ["catalog.contracts.Node"]
    schema_document = options.output_directory / "schemas" / "catalog.contracts.Node.md"
    content = schema_document.read_text(encoding="utf-8")
    assert content.startswith("# Node\n")
    assert "A category in the catalog tree." in content
    assert "(catalog.contracts.Node.md)" in content

    sidebar = json.loads(outcome.sidebar_path.read_text(encoding="utf-8"))
    assert sidebar[-1]["text"] == "Schemas"
    assert sidebar[-1]["items"][0]["items"] == [{"text": "Node", "link": "/schemas/catalog.contracts.Node"}]


def test_reruns_are_byte_identical(module_builder: ModuleBuilder) -> None:
    module_builder.write(BILLING_EVENTS)
    module_builder.write(TREE_EVENTS)
    options = module_builder.options("shop", "catalog")

    Orchestrator().run_generate(options)
    first = _snapshot(options.output_directory)
    Orchestrator().run_generate(options)

    assert _snapshot(options.output_directory) == first
    assert not any(name.endswith(".tmp") for name in first)


def test_module_without_events_writes_empty_sidebar(module_builder: ModuleBuilder) -> None:
    module_builder.write({"plain.py": "class NotAnEvent:\n    value: int\n"})

    outcome = Orchestrator().run_generate(module_builder.options("plain.py"))

    assert outcome.events == []
    assert outcome.written_files == []
    assert outcome.sidebar_path.read_text(encoding="utf-8") == "[]\n"


def test_failing_module_is_reported_and_others_processed(module_builder: ModuleBuilder) -> None:
    module_builder.write(BILLING_EVENTS)
    module_builder.write({"broken.py": "raise RuntimeError('boom')\n"})

    outcome = Orchestrator().run_generate(module_builder.options("broken.py", "shop"))

    assert len(outcome.events) == 1
    assert outcome.failed_modules == [str(module_builder.path("broken.py"))]
    assert any("boom" in warning for warning in outcome.warnings)


def test_all_modules_failing_is_fatal(module_builder: ModuleBuilder) -> None:
    module_builder.write({"broken.py": "raise RuntimeError('boom')\n"})

    with pytest.raises(EventDocsError, match="No input module"):
        Orchestrator().run_generate(module_builder.options("broken.py"))


def test_missing_module_is_input_error(module_builder: ModuleBuilder) -> None:
    with pytest.raises(InputError, match="not found"):
        Orchestrator().run_generate(module_builder.options("missing.py"))


def test_no_modules_is_input_error(module_builder: ModuleBuilder) -> None:
    with pytest.raises(InputError, match="No input modules"):
        Orchestrator().run_generate(module_builder.options())


def test_yaml_documentation_beside_module_overrides_docstring(module_builder: ModuleBuilder) -> None:
    module_builder.write(BILLING_EVENTS)
    module_builder.write(
        {
            "shop/docs.yml": """
                shop.billing.contracts.events.PaymentReceived:
                  summary: Raised once the acquirer confirms settlement.
                  properties:
                    amount: Amount in the tenant's currency.
            """
        }
    )
    options = module_builder.options("shop")

    outcome = Orchestrator().run_generate(options)

    content = (options.output_directory / outcome.events[0].file_name).read_text(encoding="utf-8")
    assert "Raised once the acquirer confirms settlement." in content
    assert "Amount in the tenant's currency." in content
    assert "Tenant that owns the payment." in content


def test_binary_format_changes_estimates(module_builder: ModuleBuilder) -> None:
    module_builder.write(BILLING_EVENTS)

    json_outcome = Orchestrator().run_generate(module_builder.options("shop"))
    binary_outcome = Orchestrator().run_generate(
        module_builder.options("shop", serialization_format="binary")
    )

    assert json_outcome.events[0].total_size.size_bytes == 91
    assert binary_outcome.events[0].total_size.size_bytes == 52


def test_copy_templates(tmp_path: Path) -> None:
    written = Orchestrator().run_copy_templates(tmp_path / "templates")

    assert sorted(path.name for path in written) == ["event.md.j2", "schema.md.j2"]
    with pytest.raises(FileExistsError):
        Orchestrator().run_copy_templates(tmp_path / "templates")


def test_write_text_atomic_replaces_content(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "doc.md"
    write_text_atomic(target, "first\n")
    write_text_atomic(target, "second\n")

    assert target.read_text(encoding="utf-8") == "second\n"
    assert [path.name for path in target.parent.iterdir()] == ["doc.md"]


def test_hanging_module_times_out_and_others_are_processed(module_builder: ModuleBuilder) -> None:
    module_builder.write(BILLING_EVENTS)
    module_builder.write({"stalled.py": "import time\n\ntime.sleep(2)\n"})

    outcome = Orchestrator().run_generate(module_builder.options("stalled.py", "shop", load_timeout=0.2))

    assert outcome.failed_modules == [str(module_builder.path("stalled.py"))]
    assert any("timed out" in warning for warning in outcome.warnings)
    assert [event.event_name for event in outcome.events] == ["PaymentReceived"]


def test_module_calling_sys_exit_does_not_abort_the_run(module_builder: ModuleBuilder) -> None:
    module_builder.write(BILLING_EVENTS)
    module_builder.write({"bailout.py": "import sys\n\nsys.exit('not today')\n"})

    outcome = Orchestrator().run_generate(module_builder.options("bailout.py", "shop"))

    assert outcome.failed_modules == [str(module_builder.path("bailout.py"))]
    assert any("not today" in warning for warning in outcome.warnings)
    assert len(outcome.events) == 1


def test_union_of_schemas_documents_each_member(module_builder: ModuleBuilder) -> None:
    module_builder.write(
        {
            "wallet.py": """
                from dataclasses import dataclass
                from typing import Union

                from eventdocs.markers import EventTopic


                @dataclass
                class Card:
                    last_four: str


                @dataclass
                class Cash:
                    currency: str


                @EventTopic("tenders")
                @dataclass
                class TenderAccepted:
                    tender: Union[Card, Cash]
            """
        }
    )
    options = module_builder.options("wallet.py")

    outcome = Orchestrator().run_generate(options)

    assert [schema.clean_name for schema in outcome.schemas] == ["wallet.Card", "wallet.Cash"]
    assert outcome.events[0].properties[0].is_complex_type
    content = (options.output_directory / outcome.events[0].file_name).read_text(encoding="utf-8")
    assert "([Card](schemas/wallet.Card.md), [Cash](schemas/wallet.Cash.md))" in content
