"""
Tests for FulfillmentResolver.

Covers:
- One stock record per item per batch, summed across lines and orders
- Re-running a batch never deducts twice
- Deductions clamp at the stock floor and report the shortfall
- Unresolved skus are queued, not raised
- Orders are scoped to their tenant
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from inventory_kernel.exceptions import OrderNotFoundError
from inventory_kernel.models.ledger import ChangeReason
from inventory_kernel.models.unresolved_sku import UnresolvedSku
from inventory_kernel.services.audit import AuditAction
from inventory_kernel.services.fulfillment_resolver import FulfillmentResolver

TENANT = "tenant-a"


def _fulfillment_records(ledger, item_id):
    return [
        r
        for r in ledger.stock_history(TENANT, item_id)
        if r.reason == ChangeReason.ORDER_FULFILLMENT.value
    ]


class TestBatchDeduction:
    def test_lines_are_summed_into_one_record(
        self, make_item, make_mapping, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("A", stock="20")
        b = make_item("B", stock="20")
        make_mapping("KIT", [(a.id, "1"), (b.id, "1")])
        first = make_order("ORD-1", [("KIT", "3")])
        second = make_order("ORD-2", [("KIT", "5")])

        result = resolver.resolve_and_apply(TENANT, [first, second], test_actor_id)

        assert result.applied_orders == (first, second)
        for item in (a, b):
            records = _fulfillment_records(ledger, item.id)
            assert len(records) == 1
            assert records[0].delta == Decimal("-8")
            assert ledger.get_item(TENANT, item.id).stock_quantity == Decimal("12")
        assert records[0].note == "Deducted for 2 order(s)"

    def test_quantity_per_unit_multiplies(
        self, make_item, make_mapping, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("A", stock="100")
        make_mapping("PACK-6", [(a.id, "6")])
        order = make_order("ORD-1", [("PACK-6", "2")])

        result = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert [(d.item_id, d.quantity) for d in result.deductions] == [(a.id, Decimal("12"))]
        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("88")

    def test_item_code_resolves_without_mapping(
        self, make_item, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("Blue Mug", stock="5", code="MUG-BLUE")
        order = make_order("ORD-1", [(" mug-blue ", "2")])

        resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("3")

    def test_item_name_matches_beyond_ascii(
        self, make_item, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("CAFÉ", stock="5")
        order = make_order("ORD-1", [("café", "1")])

        result = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert result.unresolved_skus == ()
        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("4")

    def test_renamed_item_resolves_by_new_name(
        self, make_item, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("Old Mug", stock="5")
        ledger.update_details(TENANT, a.id, test_actor_id, name="Tall Mug", code="MUG-T")
        order = make_order("ORD-1", [("tall mug", "1"), ("mug-t", "1"), ("old mug", "1")])

        result = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert [u.sku for u in result.unresolved_skus] == ["old mug"]
        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("3")

    def test_mapping_wins_over_item_code(
        self, make_item, make_mapping, make_order, resolver, ledger, test_actor_id
    ):
        plain = make_item("Plain", stock="10", code="SET")
        part = make_item("Part", stock="10")
        make_mapping("SET", [(part.id, "2")])
        order = make_order("ORD-1", [("SET", "1")])

        resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert ledger.get_item(TENANT, plain.id).stock_quantity == Decimal("10")
        assert ledger.get_item(TENANT, part.id).stock_quantity == Decimal("8")

    def test_emits_fulfillment_event(
        self, make_item, make_mapping, make_order, resolver, audit_sink, test_actor_id
    ):
        a = make_item("A", stock="5")
        make_mapping("KIT", [(a.id, "1")])
        order = make_order("ORD-1", [("KIT", "1")])

        resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert AuditAction.FULFILLMENT_APPLIED in audit_sink.actions()


class TestIdempotence:
    def test_second_run_deducts_nothing(
        self, make_item, make_mapping, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("A", stock="10")
        make_mapping("KIT", [(a.id, "1")])
        order = make_order("ORD-1", [("KIT", "4")])

        resolver.resolve_and_apply(TENANT, [order], test_actor_id)
        again = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert again.applied_orders == ()
        assert again.skipped_orders == (order,)
        assert again.deductions == ()
        assert len(_fulfillment_records(ledger, a.id)) == 1
        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("6")

    def test_resolve_pending_picks_up_unapplied_orders(
        self, make_item, make_mapping, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("A", stock="10")
        make_mapping("KIT", [(a.id, "1")])
        first = make_order("ORD-1", [("KIT", "1")])
        resolver.resolve_and_apply(TENANT, [first], test_actor_id)
        second = make_order("ORD-2", [("KIT", "2")])

        result = resolver.resolve_pending(TENANT, test_actor_id)

        assert result.applied_orders == (second,)
        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("7")


class TestStockFloor:
    def test_clamped_at_zero(
        self, make_item, make_mapping, make_order, resolver, ledger, test_actor_id, captured_logs
    ):
        a = make_item("A", stock="3")
        make_mapping("KIT", [(a.id, "1")])
        order = make_order("ORD-1", [("KIT", "5")])

        result = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("0")
        assert len(result.shortfalls) == 1
        shortfall = result.shortfalls[0]
        assert shortfall.requested == Decimal("5")
        assert shortfall.applied == Decimal("3")
        assert shortfall.shortfall == Decimal("2")
        record = _fulfillment_records(ledger, a.id)[0]
        assert record.delta == Decimal("-3")
        assert "clamped at stock floor" in record.note
        assert any(r["message"] == "fulfillment_stock_shortfall" for r in captured_logs())

    def test_configured_floor(
        self, session, deterministic_clock, audit_sink, make_item, make_mapping, make_order, ledger, test_actor_id
    ):
        a = make_item("A", stock="10")
        make_mapping("KIT", [(a.id, "1")])
        order = make_order("ORD-1", [("KIT", "9")])
        resolver = FulfillmentResolver(
            session, deterministic_clock, audit_sink, stock_floor=Decimal("2")
        )

        result = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("2")
        assert result.shortfalls[0].applied == Decimal("8")

    def test_empty_stock_writes_no_record(
        self, make_item, make_mapping, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("A", stock="0")
        make_mapping("KIT", [(a.id, "1")])
        order = make_order("ORD-1", [("KIT", "1")])

        result = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert result.applied_orders == (order,)
        assert result.shortfalls[0].applied == Decimal("0")
        assert _fulfillment_records(ledger, a.id) == []


class TestUnresolved:
    def test_unknown_sku_is_queued_once(
        self, session, make_order, resolver, mapping_graph, test_actor_id
    ):
        order = make_order("ORD-1", [("X", "1")])

        first = resolver.resolve_and_apply(TENANT, [order], test_actor_id)
        second = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert first.skipped_orders == (order,)
        assert [(u.sku, u.source_order_id) for u in first.unresolved_skus] == [("X", "ORD-1")]
        assert second.skipped_orders == (order,)
        rows = session.execute(select(UnresolvedSku).where(UnresolvedSku.tenant_id == TENANT)).scalars().all()
        assert len(rows) == 1
        assert mapping_graph.pending_unresolved_skus(TENANT) == ["X"]

    def test_order_waits_for_its_mapping(
        self, make_item, make_mapping, make_order, resolver, ledger, mapping_graph, test_actor_id
    ):
        a = make_item("A", stock="10")
        order = make_order("ORD-1", [("LATE", "2")])
        resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        make_mapping("LATE", [(a.id, "1")])
        result = resolver.resolve_pending(TENANT, test_actor_id)

        assert result.applied_orders == (order,)
        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("8")
        assert mapping_graph.pending_unresolved_skus(TENANT) == []

    def test_partly_resolved_order_is_applied(
        self, make_item, make_mapping, make_order, resolver, ledger, test_actor_id
    ):
        a = make_item("A", stock="10")
        make_mapping("KIT", [(a.id, "1")])
        order = make_order("ORD-1", [("KIT", "1"), ("X", "1")])

        result = resolver.resolve_and_apply(TENANT, [order], test_actor_id)

        assert result.applied_orders == (order,)
        assert [u.sku for u in result.unresolved_skus] == ["X"]
        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("9")


class TestTenantScoping:
    def test_other_tenant_order_is_not_found(self, make_order, resolver, test_actor_id):
        foreign = make_order("ORD-1", [("KIT", "1")], tenant="tenant-b")

        with pytest.raises(OrderNotFoundError):
            resolver.resolve_and_apply(TENANT, [foreign], test_actor_id)

    def test_unknown_order_id(self, resolver, test_actor_id):
        with pytest.raises(OrderNotFoundError) as exc_info:
            resolver.resolve_and_apply(TENANT, [uuid4()], test_actor_id)
        assert exc_info.value.code == "ORDER_NOT_FOUND"

    def test_empty_batch(self, resolver, test_actor_id):
        result = resolver.resolve_and_apply(TENANT, [], test_actor_id)

        assert result.applied_orders == ()
        assert result.deductions == ()
