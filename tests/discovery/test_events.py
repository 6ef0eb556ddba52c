"""Tests for event discovery and metadata extraction."""

from __future__ import annotations

from pathlib import Path

import pytest

from eventdocs.config import GeneratorOptions
from eventdocs.discovery.events import EventDiscoverer
from eventdocs.sizing import DYNAMIC_STRING_WARNING
from tests._fixtures.module_builder import BILLING_EVENTS, ModuleBuilder


@pytest.fixture
def discoverer(tmp_path: Path) -> EventDiscoverer:
    return EventDiscoverer(GeneratorOptions(module_paths=(), output_directory=tmp_path / "out"))


def test_discovers_billing_event(module_builder: ModuleBuilder, discoverer: EventDiscoverer) -> None:
    module_builder.write(BILLING_EVENTS)

    with module_builder.load("shop") as module:
        result = discoverer.discover(module)

    assert result.skipped_count == 0
    assert len(result.events) == 1
    event = result.events[0]
    assert event.event_name == "PaymentReceived"
    assert event.full_type_name == "shop.billing.contracts.events.PaymentReceived"
    assert event.domain == "billing"
    assert event.topic_name == "{env}.billing.public.payments.v1"
    assert [key.name for key in event.partition_keys] == ["tenant_id"]
    assert event.partition_keys[0].is_from_parameter is False
    assert event.source_file == "shop/billing/contracts/events.py"


def test_property_metadata(module_builder: ModuleBuilder, discoverer: EventDiscoverer) -> None:
    module_builder.write(BILLING_EVENTS)

    with module_builder.load("shop") as module:
        event = discoverer.discover(module).events[0]

    tenant, amount, reference = event.properties
    assert (tenant.name, tenant.type_name, tenant.is_required) == ("tenant_id", "str", True)
    assert tenant.is_partition_key and tenant.partition_key_order == 0
    assert tenant.description == "Tenant that owns the payment."
    assert (tenant.estimated_size_bytes, tenant.is_accurate) == (38, True)
    assert (amount.type_name, amount.estimated_size_bytes) == ("Decimal", 16)
    assert reference.type_name == "str | None"
    assert reference.is_required is False
    assert reference.description == "No description available"
    assert reference.size_warning == DYNAMIC_STRING_WARNING
    # 38 + 12 + 16 + 9 + 0 + 12 + braces + two separators
    assert event.total_size.size_bytes == 91
    assert event.total_size.is_accurate is False


def test_topic_defaults_and_flags(module_builder: ModuleBuilder, discoverer: EventDiscoverer) -> None:
    module_builder.write(
        {
            "ledger/__init__.py": "",
            "ledger/domain_events.py": """
                from dataclasses import dataclass

                from eventdocs.markers import Deprecated, EventTopic


                @EventTopic(internal=True, version="v2", pluralize=True)
                @dataclass
                class InvoiceCategory:
                    name: str


                @Deprecated("Use InvoiceCategory")
                @EventTopic("legacy", domain="Accounting")
                @dataclass
                class LegacyInvoice:
                    number: int
            """,
        }
    )

    with module_builder.load("ledger") as module:
        events = {event.event_name: event for event in discoverer.discover(module).events}

    category = events["InvoiceCategory"]
    assert category.topic_name == "{env}.ledger.internal.invoice-categories.v2"
    assert category.is_internal
    assert category.obsolete_message is None

    legacy = events["LegacyInvoice"]
    assert legacy.domain == "Accounting"
    assert legacy.topic_name == "{env}.accounting.public.legacy.v1"
    assert legacy.obsolete_message == "Use InvoiceCategory"


def test_domain_follows_first_boundary_segment(tmp_path: Path) -> None:
    discoverer = EventDiscoverer(
        GeneratorOptions(module_paths=(), output_directory=tmp_path, boundary_segments=("Contracts", "Events"))
    )

    assert discoverer.domain_from_namespace("shop.billing.contracts.events") == "billing"
    assert discoverer.domain_from_namespace("shop.orders.integration_events") is None
    assert discoverer.domain_from_namespace("contracts.billing") is None
    assert discoverer.domain_from_namespace("shop.payments.events.contracts") == "payments"


def test_integration_events_segment_matches_snake_case(discoverer: EventDiscoverer) -> None:
    assert discoverer.domain_from_namespace("shop.orders.integration_events") == "orders"


def test_partition_key_declared_on_constructor(
    module_builder: ModuleBuilder, discoverer: EventDiscoverer
) -> None:
    module_builder.write(
        {
            "orders.py": """
                from typing import Annotated

                from eventdocs.markers import EventTopic, PartitionKey


                @EventTopic("orders")
                class OrderPlaced:
                    def __init__(
                        self,
                        region: Annotated[str, PartitionKey(order=1)],
                        order_id: Annotated[int, PartitionKey(order=0)],
                    ) -> None:
                        self._region = region
                        self._order_id = order_id

                    @property
                    def region(self) -> str:
                        return self._region

                    @property
                    def order_id(self) -> int:
                        return self._order_id
            """
        }
    )

    with module_builder.load("orders.py") as module:
        event = discoverer.discover(module).events[0]

    assert [key.name for key in event.partition_keys] == ["order_id", "region"]
    assert all(key.is_from_parameter for key in event.partition_keys)
    assert event.domain == "orders"


def test_unresolvable_event_is_skipped_with_warning(
    module_builder: ModuleBuilder, discoverer: EventDiscoverer
) -> None:
    module_builder.write(
        {
            "partial.py": """
                from __future__ import annotations

                from dataclasses import dataclass

                from eventdocs.markers import EventTopic


                @EventTopic("broken")
                @dataclass
                class Broken:
                    customer: MissingCustomer


                @EventTopic("healthy")
                @dataclass
                class Healthy:
                    name: str
            """
        }
    )

    with module_builder.load("partial.py") as module:
        result = discoverer.discover(module)

    assert [event.event_name for event in result.events] == ["Healthy"]
    assert result.skipped_count == 1
    assert "partial.Broken" in result.warnings[0]


def test_ignores_classes_without_topic(module_builder: ModuleBuilder, discoverer: EventDiscoverer) -> None:
    module_builder.write({"plain.py": "class NotAnEvent:\n    value: int\n"})

    with module_builder.load("plain.py") as module:
        assert discoverer.discover(module).events == []


def test_event_topic_attribute_is_recognised(
    module_builder: ModuleBuilder, discoverer: EventDiscoverer
) -> None:
    module_builder.write(
        {
            "vendored.py": """
                from dataclasses import dataclass


                class EventTopicAttribute:
                    def __init__(self, topic):
                        self.topic = topic


                @dataclass
                class StockAdjusted:
                    __event_topic__ = EventTopicAttribute("stock")

                    sku: str
            """
        }
    )

    with module_builder.load("vendored.py") as module:
        events = discoverer.discover(module).events

    assert [event.topic_name for event in events] == ["{env}.vendored.public.stock.v1"]


def test_partition_keys_with_equal_order_sort_by_name(
    module_builder: ModuleBuilder, discoverer: EventDiscoverer
) -> None:
    module_builder.write(
        {
            "routing.py": """
                from dataclasses import dataclass
                from typing import Annotated

                from eventdocs.markers import EventTopic, PartitionKey


                @EventTopic("transfers")
                @dataclass
                class TransferBooked:
                    zone: Annotated[str, PartitionKey(order=1)]
                    account: Annotated[str, PartitionKey(order=1)]
                    tenant: Annotated[str, PartitionKey()]
            """
        }
    )

    with module_builder.load("routing.py") as module:
        event = discoverer.discover(module).events[0]

    assert [(key.order, key.name) for key in event.partition_keys] == [(0, "tenant"), (1, "account"), (1, "zone")]


def test_pydantic_event_lists_only_model_fields(
    module_builder: ModuleBuilder, discoverer: EventDiscoverer
) -> None:
    module_builder.write(
        {
            "checkout.py": """
                from pydantic import BaseModel

                from eventdocs.markers import EventTopic


                @EventTopic("orders")
                class OrderPlaced(BaseModel):
                    order_id: int
            """
        }
    )

    with module_builder.load("checkout.py") as module:
        event = discoverer.discover(module).events[0]

    assert [prop.name for prop in event.properties] == ["order_id"]
    # 8 for the int, 11 for the quoted name and colon, 2 for the braces
    assert event.total_size.size_bytes == 21
