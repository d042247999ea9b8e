"""
Config -> Kernel / Engine Bridges.

Functions that turn an InventoryConfig into the plain inputs the kernel and
the engines take.  They live here because the kernel must NEVER import
inventory_config.

Usage:
    from inventory_config import get_active_config
    from inventory_config.bridges import build_fulfillment_resolver, init_database

    config = get_active_config()
    init_database(config)
    resolver = build_fulfillment_resolver(session, config)
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from inventory_config.schema import InventoryConfig
from inventory_engines.valuation.status import DamageRules, StatusRules
from inventory_kernel.db.engine import init_engine_from_url
from inventory_kernel.domain.clock import Clock
from inventory_kernel.logging_config import configure_logging
from inventory_kernel.services.audit import AuditSink
from inventory_kernel.services.fulfillment_resolver import FulfillmentResolver
from inventory_services.valuation_service import ValuationService


def build_status_rules(config: InventoryConfig) -> StatusRules:
    keywords = config.valuation.status_keywords
    return StatusRules(
        delivered=keywords.delivered,
        shipped=keywords.shipped,
        returned=keywords.returned,
        rto=keywords.rto,
    )


def build_damage_rules(config: InventoryConfig) -> DamageRules:
    return DamageRules(
        damage_keywords=config.valuation.damage_keywords,
        lost_statuses=config.valuation.lost_statuses,
    )


def init_database(config: InventoryConfig) -> Engine:
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )


def apply_logging(config: InventoryConfig) -> None:
    configure_logging(level=logging.getLevelName(config.logging.level))


def build_fulfillment_resolver(
    session: Session,
    config: InventoryConfig,
    clock: Clock | None = None,
    audit_sink: AuditSink | None = None,
) -> FulfillmentResolver:
    return FulfillmentResolver(
        session,
        clock,
        audit_sink,
        stock_floor=config.fulfillment.stock_floor,
    )


def build_valuation_service(
    session: Session,
    config: InventoryConfig,
    clock: Clock | None = None,
) -> ValuationService:
    return ValuationService(session, clock, status_rules=build_status_rules(config))
