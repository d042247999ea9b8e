"""
Command validation and payload parsing.

Loose payloads are parsed once, at the boundary; every failure surfaces as a
typed InvalidInputError with a machine-readable code.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.commands import (
    ComponentSpec,
    CreateItemCommand,
    MappingCommand,
    OrderCommand,
    OrderLineCommand,
    UpdateItemCommand,
)
from inventory_kernel.exceptions import (
    InvalidComponentError,
    InvalidFieldError,
    InvalidInputError,
    InvalidQuantityError,
    MissingFieldError,
)

TENANT = "tenant-a"


class TestCreateItemCommand:
    def test_from_payload(self):
        command = CreateItemCommand.from_payload(
            TENANT,
            {"name": " Mug ", "code": "", "unit_cost": "2.50", "stock_quantity": 4},
        )

        assert command.name == "Mug"
        assert command.code is None
        assert command.unit_cost == Decimal("2.50")
        assert command.stock_quantity == Decimal("4")

    def test_json_float_goes_through_repr(self):
        command = CreateItemCommand.from_payload(TENANT, {"name": "Mug", "unit_cost": 0.1})

        assert command.unit_cost == Decimal("0.1")

    @pytest.mark.parametrize(
        "payload, error",
        [
            ({}, MissingFieldError),
            ({"name": "   "}, MissingFieldError),
            ({"name": "Mug", "unit_cost": "abc"}, InvalidFieldError),
            ({"name": "Mug", "unit_cost": "-1"}, InvalidFieldError),
            ({"name": "Mug", "stock_quantity": "Infinity"}, InvalidFieldError),
        ],
    )
    def test_rejects(self, payload, error):
        with pytest.raises(error):
            CreateItemCommand.from_payload(TENANT, payload)

    def test_float_in_constructor_rejected(self):
        with pytest.raises(InvalidFieldError):
            CreateItemCommand(tenant_id=TENANT, name="Mug", unit_cost=1.5)


class TestUpdateItemCommand:
    def test_absent_means_unchanged(self):
        item_id = uuid4()

        command = UpdateItemCommand.from_payload(TENANT, str(item_id), {"unit_cost": "3"})

        assert command.item_id == item_id
        assert command.unit_cost == Decimal("3")
        assert command.stock_quantity is None
        assert command.name is None

    def test_bad_item_id(self):
        with pytest.raises(InvalidFieldError):
            UpdateItemCommand.from_payload(TENANT, "not-a-uuid", {})

    def test_blank_name(self):
        with pytest.raises(InvalidFieldError):
            UpdateItemCommand(tenant_id=TENANT, item_id=uuid4(), name=" ")


class TestMappingCommand:
    def test_from_payload(self):
        item_id = uuid4()

        command = MappingCommand.from_payload(
            TENANT,
            {
                "sku": "KIT-1",
                "packaging_cost": "0.75",
                "components": [{"inventory_item_id": str(item_id), "quantity_per_unit": "2"}],
            },
        )

        assert command.components == (ComponentSpec(item_id, Decimal("2")),)
        assert command.packaging_cost == Decimal("0.75")

    def test_quantity_defaults_to_one(self):
        command = MappingCommand.from_payload(
            TENANT, {"sku": "KIT-1", "components": [{"inventory_item_id": str(uuid4())}]}
        )

        assert command.components[0].quantity_per_unit == Decimal("1")

    def test_manufacturing_cost_is_not_accepted(self):
        with pytest.raises(TypeError):
            MappingCommand(
                tenant_id=TENANT,
                sku="KIT-1",
                components=(ComponentSpec(uuid4(), Decimal("1")),),
                manufacturing_cost=Decimal("5"),
            )

    @pytest.mark.parametrize(
        "payload, error",
        [
            ({"sku": "KIT-1"}, MissingFieldError),
            ({"sku": "KIT-1", "components": "abc"}, InvalidComponentError),
            ({"sku": "KIT-1", "components": []}, InvalidComponentError),
            ({"components": [{"inventory_item_id": str(uuid4())}]}, MissingFieldError),
            (
                {"sku": "KIT-1", "components": [{"inventory_item_id": str(uuid4()), "quantity_per_unit": 0}]},
                InvalidQuantityError,
            ),
            (
                {"sku": "KIT-1", "components": [{"inventory_item_id": "x"}]},
                InvalidFieldError,
            ),
            ({"sku": "KIT-1", "components": ["abc"]}, InvalidFieldError),
            ({"sku": "KIT-1", "components": [None]}, InvalidFieldError),
            ("KIT-1", InvalidFieldError),
        ],
    )
    def test_rejects(self, payload, error):
        with pytest.raises(error) as exc_info:
            MappingCommand.from_payload(TENANT, payload)
        assert isinstance(exc_info.value, InvalidInputError)


class TestOrderCommand:
    def test_from_payload(self):
        command = OrderCommand.from_payload(
            TENANT,
            {
                "external_order_id": "ORD-1",
                "order_date": "2024-02-10T10:00:00+05:30",
                "lines": [{"sku": "A", "quantity": "2", "sub_order_id": "S-1"}],
            },
        )

        assert command.order_date == datetime(2024, 2, 10, 4, 30, tzinfo=timezone.utc)
        assert command.lines == (OrderLineCommand("A", Decimal("2"), "S-1"),)

    def test_naive_order_date_rejected(self):
        with pytest.raises(InvalidFieldError):
            OrderCommand(tenant_id=TENANT, external_order_id="ORD-1", order_date=datetime(2024, 1, 1))

    def test_missing_order_date(self):
        with pytest.raises(MissingFieldError):
            OrderCommand.from_payload(TENANT, {"external_order_id": "ORD-1"})

    @pytest.mark.parametrize("quantity", ["0", "-2", "lots"])
    def test_bad_line_quantity(self, quantity):
        with pytest.raises(InvalidQuantityError):
            OrderLineCommand.from_payload({"sku": "A", "quantity": quantity})

    def test_error_codes(self):
        with pytest.raises(InvalidInputError) as exc_info:
            OrderLineCommand.from_payload({"quantity": "1"})
        assert exc_info.value.code == "MISSING_FIELD"

    @pytest.mark.parametrize(
        "lines, field_name",
        [
            (["KIT"], "lines"),
            ([7], "lines"),
            ("KIT", "lines"),
            ({"sku": "KIT"}, "lines"),
        ],
    )
    def test_malformed_lines(self, lines, field_name):
        with pytest.raises(InvalidFieldError) as exc_info:
            OrderCommand.from_payload(
                TENANT,
                {"external_order_id": "ORD-1", "order_date": "2024-02-10", "lines": lines},
            )
        assert exc_info.value.field_name == field_name

    @pytest.mark.parametrize("payload", [None, "ORD-1", ["ORD-1"]])
    def test_payload_must_be_a_mapping(self, payload):
        with pytest.raises(InvalidFieldError) as exc_info:
            OrderCommand.from_payload(TENANT, payload)
        assert exc_info.value.code == "INVALID_FIELD"
