"""
Module: inventory_engines
Responsibility:
    Pure calculation layer on top of the kernel: point-in-time valuation,
    profit/loss aggregation and reporting periods.

Architecture position:
    Engines -- zero I/O.  May only import inventory_kernel.domain (and the
    kernel logger).  MUST NOT import inventory_services or inventory_config.

Invariants enforced:
    - Engines never read the system clock; dates come in as parameters.
    - Decimal-only arithmetic.
    - Identical inputs produce identical outputs.

Usage:
    from inventory_engines.valuation import SnapshotTimeline, compute_profit_loss
    from inventory_engines.periods import ReportPeriod, resolve_period
"""

from inventory_engines.periods import DateRange, ReportPeriod, resolve_period
from inventory_engines.valuation import (
    ProfitLossReport,
    SettlementRecord,
    SnapshotTimeline,
    compute_profit_loss,
)

__all__ = [
    "DateRange",
    "ProfitLossReport",
    "ReportPeriod",
    "SettlementRecord",
    "SnapshotTimeline",
    "compute_profit_loss",
    "resolve_period",
]
