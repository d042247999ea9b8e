"""
Inventory configuration schema.

Frozen dataclasses parsed from YAML by ``inventory_config.loader``.  Every
field has a default, so an empty document is a valid configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Arguments for ``inventory_kernel.db.engine.init_engine_from_url``."""

    url: str = "postgresql://localhost/inventory"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800


# ---------------------------------------------------------------------------
# Fulfillment / valuation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FulfillmentConfig:
    # Stock is never deducted below this on the fulfillment path
    stock_floor: Decimal = Decimal("0")


@dataclass(frozen=True)
class StatusKeywords:
    """Case-insensitive substrings identifying each order status."""

    delivered: tuple[str, ...] = ("delivered",)
    shipped: tuple[str, ...] = ("shipped",)
    returned: tuple[str, ...] = ("return",)
    rto: tuple[str, ...] = ("rto",)


@dataclass(frozen=True)
class ValuationConfig:
    status_keywords: StatusKeywords = field(default_factory=StatusKeywords)
    damage_keywords: tuple[str, ...] = ("damaged",)
    lost_statuses: tuple[str, ...] = ("undelivered",)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class InventoryConfig:
    """The complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    fulfillment: FulfillmentConfig = field(default_factory=FulfillmentConfig)
    valuation: ValuationConfig = field(default_factory=ValuationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: str | None = None
    checksum: str = ""
