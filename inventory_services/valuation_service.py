"""
inventory_services.valuation_service -- Profit/loss at historical cost.

Responsibility:
    Load the mapping snapshot history of the skus being reported on, build
    one SnapshotTimeline per sku, and run the pure valuation engine over the
    caller's settlement records.

Architecture position:
    Services -- orchestration over engines + kernel selectors.  Read-only:
    never flushes, never writes.

Invariants enforced:
    - Costs come from SkuMappingSnapshot history, never from the live
      SkuMapping row, so later cost edits do not revalue past orders.
    - Snapshot history is only read for the tenant passed in.

Usage:
    service = ValuationService(session, clock)
    report = service.compute_profit_loss(
        tenant_id,
        settlements,
        service.period_range(ReportPeriod.LAST_MONTH),
        damage_lookup,
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

from sqlalchemy.orm import Session

from inventory_engines.periods import DateRange, ReportPeriod, resolve_period
from inventory_engines.valuation import (
    CostBasis,
    ProfitLossReport,
    SettlementRecord,
    SnapshotTimeline,
    StatusRules,
    compute_profit_loss,
)
from inventory_engines.valuation.status import DEFAULT_STATUS_RULES
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.values import normalize_sku
from inventory_kernel.logging_config import get_logger
from inventory_kernel.selectors.mapping_selector import MappingSelector

logger = get_logger("services.valuation")


class ValuationService:
    """
    Historical-cost profit/loss reporting.

    Contract:
        Receives Session and Clock via constructor injection.
    Non-goals:
        - Does not parse settlement or return files; callers hand in
          SettlementRecords and a damage lookup.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        status_rules: StatusRules | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.status_rules = status_rules or DEFAULT_STATUS_RULES
        self._selector = MappingSelector(session)

    def period_range(self, period: ReportPeriod | str) -> DateRange:
        """Concrete dates of a preset, relative to the injected clock's today."""
        return resolve_period(period, self.clock.now().date())

    def timelines(self, tenant_id: str, skus: Iterable[str]) -> dict[str, SnapshotTimeline]:
        """Cost timeline per normalized sku; skus without history are absent."""
        return {
            key: SnapshotTimeline.from_snapshots(snapshots)
            for key, snapshots in self._selector.snapshots_by_sku(tenant_id, skus).items()
        }

    def cost_at(self, tenant_id: str, sku: str, moment: datetime) -> CostBasis | None:
        """Costs of ``sku`` in effect at ``moment``, or None without history."""
        timeline = self.timelines(tenant_id, [sku]).get(normalize_sku(sku))
        return timeline.at(moment) if timeline else None

    def compute_profit_loss(
        self,
        tenant_id: str,
        settlements: Iterable[SettlementRecord],
        date_range: DateRange,
        damage_lookup: Mapping[str, bool] | None = None,
    ) -> ProfitLossReport:
        """
        Per-order breakdown, aggregate and monthly sku table for ``date_range``.

        Settlements outside the range are ignored, and their skus' history
        is not loaded.
        """
        in_range = [s for s in settlements if date_range.contains(s.order_date)]
        timelines = self.timelines(tenant_id, {s.sku for s in in_range})

        report = compute_profit_loss(
            in_range,
            timelines,
            date_range=date_range,
            damage_lookup=damage_lookup or {},
            rules=self.status_rules,
        )

        aggregate = report.aggregate
        logger.info(
            "profit_loss_computed",
            extra={
                "tenant_id": tenant_id,
                "date_range": str(date_range),
                "orders": len(report.orders),
                "matched": aggregate.matched_count,
                "unmatched": aggregate.unmatched_count,
                "revenue": aggregate.revenue,
                "cogs": aggregate.cogs,
                "profit": aggregate.profit,
            },
        )
        return report
