"""Tests for OrderIngestor."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from inventory_kernel.domain.commands import OrderCommand, OrderLineCommand
from inventory_kernel.exceptions import DuplicateOrderError, MissingFieldError
from inventory_kernel.models.order import OrderRecord
from inventory_kernel.models.unresolved_sku import UnresolvedSku
from inventory_kernel.services.audit import AuditAction

TENANT = "tenant-a"
ORDER_DATE = datetime(2024, 2, 10, 12, 0, tzinfo=timezone.utc)


def _order(external_id, *lines, tenant=TENANT):
    return OrderCommand(
        tenant_id=tenant,
        external_order_id=external_id,
        order_date=ORDER_DATE,
        lines=tuple(OrderLineCommand(sku, Decimal(q)) for sku, q in lines),
    )


def _count_orders(session):
    return session.execute(select(func.count()).select_from(OrderRecord)).scalar()


class TestIngest:
    def test_saves_new_orders_and_skips_known_ones(self, session, ingestor, test_actor_id):
        first = ingestor.ingest(TENANT, [_order("ORD-1", ("A", "1"))], test_actor_id)
        second = ingestor.ingest(
            TENANT,
            [_order("ORD-1", ("A", "1")), _order("ORD-2", ("A", "2"))],
            test_actor_id,
        )

        assert len(first.saved) == 1
        assert len(second.saved) == 1
        assert second.skipped == ("ORD-1",)
        assert _count_orders(session) == 2

    def test_duplicate_within_one_batch(self, session, ingestor, test_actor_id):
        result = ingestor.ingest(
            TENANT,
            [_order("ORD-1", ("A", "1")), _order(" ORD-1 ", ("A", "1"))],
            test_actor_id,
        )

        assert len(result.saved) == 1
        assert result.skipped == ("ORD-1",)

    def test_same_id_in_another_tenant_is_new(self, ingestor, test_actor_id):
        ingestor.ingest(TENANT, [_order("ORD-1", ("A", "1"))], test_actor_id)

        other = ingestor.ingest(
            "tenant-b", [_order("ORD-1", ("A", "1"), tenant="tenant-b")], test_actor_id
        )

        assert len(other.saved) == 1

    def test_order_without_lines_is_reported(self, ingestor, test_actor_id):
        result = ingestor.ingest(TENANT, [_order("ORD-EMPTY")], test_actor_id)

        assert result.saved == ()
        assert [(e.external_order_id, e.code) for e in result.errors] == [
            ("ORD-EMPTY", "MISSING_FIELD")
        ]

    def test_foreign_tenant_command_is_reported(self, ingestor, test_actor_id):
        result = ingestor.ingest(
            TENANT, [_order("ORD-1", ("A", "1"), tenant="tenant-b")], test_actor_id
        )

        assert result.saved == ()
        assert result.errors[0].code == "INVALID_FIELD"

    def test_lines_keep_their_order(self, session, ingestor, test_actor_id):
        result = ingestor.ingest(
            TENANT, [_order("ORD-1", ("B", "1"), ("A", "2"), ("C", "3"))], test_actor_id
        )

        order = session.get(OrderRecord, result.saved[0])
        assert [(line.line_number, line.sku) for line in order.lines] == [
            (1, "B"),
            (2, "A"),
            (3, "C"),
        ]
        assert order.fulfillment_applied is False

    def test_unresolved_sku_queued_without_duplicates(self, session, ingestor, test_actor_id):
        result = ingestor.ingest(
            TENANT, [_order("ORD-1", ("X", "1"), ("x ", "2"))], test_actor_id
        )
        ingestor.ingest(TENANT, [_order("ORD-1", ("X", "1"))], test_actor_id)

        assert [(u.sku, u.source_order_id) for u in result.unresolved_skus] == [("X", "ORD-1")]
        rows = session.execute(
            select(func.count()).select_from(UnresolvedSku).where(UnresolvedSku.tenant_id == TENANT)
        ).scalar()
        assert rows == 1

    def test_does_not_touch_stock(self, make_item, make_mapping, ingestor, ledger, test_actor_id):
        a = make_item("A", stock="5")
        make_mapping("KIT", [(a.id, "1")])

        result = ingestor.ingest(TENANT, [_order("ORD-1", ("KIT", "2"))], test_actor_id)

        assert result.unresolved_skus == ()
        assert ledger.get_item(TENANT, a.id).stock_quantity == Decimal("5")

    def test_emits_one_batch_event(self, ingestor, audit_sink, test_actor_id):
        ingestor.ingest(
            TENANT, [_order("ORD-1", ("A", "1")), _order("ORD-2", ("A", "1"))], test_actor_id
        )
        ingestor.ingest(TENANT, [_order("ORD-1", ("A", "1"))], test_actor_id)

        assert audit_sink.actions().count(AuditAction.ORDERS_INGESTED) == 1


class TestIngestOne:
    def test_duplicate_raises(self, ingestor, test_actor_id):
        ingestor.ingest_one(_order("ORD-1", ("A", "1")), test_actor_id)

        with pytest.raises(DuplicateOrderError) as exc_info:
            ingestor.ingest_one(_order("ORD-1", ("A", "1")), test_actor_id)
        assert exc_info.value.external_order_id == "ORD-1"

    def test_missing_lines_raises(self, ingestor, test_actor_id):
        with pytest.raises(MissingFieldError):
            ingestor.ingest_one(_order("ORD-1"), test_actor_id)


class TestIngestPayloads:
    def test_bad_payloads_are_reported_alongside_good_ones(self, ingestor, test_actor_id):
        payloads = [
            {
                "external_order_id": "ORD-1",
                "order_date": "2024-02-10",
                "lines": [{"sku": "A", "quantity": 2, "sub_order_id": "S-1"}],
            },
            {"external_order_id": "ORD-2", "order_date": "not a date", "lines": []},
            {"order_date": "2024-02-10", "lines": [{"sku": "A"}]},
            {
                "external_order_id": "ORD-3",
                "order_date": "2024-02-10T08:30:00Z",
                "lines": [{"sku": "A", "quantity": 0}],
            },
        ]

        result = ingestor.ingest_payloads(TENANT, payloads, test_actor_id)

        assert len(result.saved) == 1
        assert [(e.external_order_id, e.code) for e in result.errors] == [
            ("ORD-2", "INVALID_FIELD"),
            (None, "MISSING_FIELD"),
            ("ORD-3", "INVALID_QUANTITY"),
        ]

    def test_date_only_order_is_midnight_utc(self, session, ingestor, test_actor_id):
        result = ingestor.ingest_payloads(
            TENANT,
            [{"external_order_id": "ORD-1", "order_date": "2024-02-10", "lines": [{"sku": "A"}]}],
            test_actor_id,
        )

        order = session.get(OrderRecord, result.saved[0])
        assert order.order_date == datetime(2024, 2, 10, tzinfo=timezone.utc)

    def test_malformed_shapes_become_error_entries(self, ingestor, test_actor_id):
        payloads = [
            {"external_order_id": "ORD-1", "order_date": "2024-02-10", "lines": [{"sku": "A"}]},
            {"external_order_id": "ORD-2", "order_date": "2024-02-10", "lines": ["KIT"]},
            {"external_order_id": "ORD-3", "order_date": "2024-02-10", "lines": "KIT"},
            "ORD-4",
        ]

        result = ingestor.ingest_payloads(TENANT, payloads, test_actor_id)

        assert len(result.saved) == 1
        assert [(e.external_order_id, e.code) for e in result.errors] == [
            ("ORD-2", "INVALID_FIELD"),
            ("ORD-3", "INVALID_FIELD"),
            (None, "INVALID_FIELD"),
        ]
