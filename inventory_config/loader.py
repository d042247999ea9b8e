"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into the frozen ``inventory_config.schema``
dataclasses.  Callers go through ``inventory_config.get_active_config()``.

Invariants enforced
-------------------
* Missing keys take the schema default; present keys must be well formed.
* Unknown keys are rejected, so a typo never silently falls back to a
  default.
* ``compute_checksum`` is deterministic for identical documents.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML or malformed value  -> ``ConfigurationError`` naming the
  dotted key.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    DatabaseConfig,
    FulfillmentConfig,
    InventoryConfig,
    LoggingConfig,
    StatusKeywords,
    ValuationConfig,
)
from inventory_kernel.exceptions import ConfigurationError

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file; an empty file is an empty dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigurationError: if the YAML is invalid or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], key: str, allowed: set[str]) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(key, "must be a mapping")
    unknown = set(value) - allowed
    if unknown:
        raise ConfigurationError(key, f"unknown keys {sorted(unknown)}")
    return value


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(key, f"expected true/false, got {value!r}")
    return value


def _int(value: Any, key: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"expected an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(key, f"must be >= {minimum}")
    return value


def _text(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(key, "expected a non-empty string")
    return value.strip()


def _decimal(value: Any, key: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigurationError(key, f"expected a number, got {value!r}")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ConfigurationError(key, f"not a number: {value!r}") from exc
    if not result.is_finite():
        raise ConfigurationError(key, "must be finite")
    return result


def _keywords(value: Any, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not value:
        raise ConfigurationError(key, "expected a non-empty list of strings")
    return tuple(_text(v, key).lower() for v in value)


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    section = _section(
        data,
        "database",
        {"url", "echo", "pool_size", "max_overflow", "pool_pre_ping", "pool_timeout", "pool_recycle"},
    )
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=_text(section["url"], "database.url") if "url" in section else defaults.url,
        echo=_bool(section.get("echo", defaults.echo), "database.echo"),
        pool_size=_int(section.get("pool_size", defaults.pool_size), "database.pool_size", 1),
        max_overflow=_int(
            section.get("max_overflow", defaults.max_overflow), "database.max_overflow"
        ),
        pool_pre_ping=_bool(
            section.get("pool_pre_ping", defaults.pool_pre_ping), "database.pool_pre_ping"
        ),
        pool_timeout=_int(
            section.get("pool_timeout", defaults.pool_timeout), "database.pool_timeout", 1
        ),
        pool_recycle=_int(
            section.get("pool_recycle", defaults.pool_recycle), "database.pool_recycle"
        ),
    )


def parse_fulfillment(data: dict[str, Any]) -> FulfillmentConfig:
    section = _section(data, "fulfillment", {"stock_floor"})
    if "stock_floor" not in section:
        return FulfillmentConfig()
    floor = _decimal(section["stock_floor"], "fulfillment.stock_floor")
    if floor < 0:
        raise ConfigurationError("fulfillment.stock_floor", "must not be negative")
    return FulfillmentConfig(stock_floor=floor)


def parse_valuation(data: dict[str, Any]) -> ValuationConfig:
    section = _section(data, "valuation", {"status_keywords", "damage_keywords", "lost_statuses"})
    defaults = ValuationConfig()

    keywords = _section(section, "status_keywords", {"delivered", "shipped", "returned", "rto"})
    status_keywords = StatusKeywords(
        **{
            name: _keywords(value, f"valuation.status_keywords.{name}")
            for name, value in keywords.items()
        }
    )

    lost = section.get("lost_statuses", list(defaults.lost_statuses))
    if not isinstance(lost, list):
        raise ConfigurationError("valuation.lost_statuses", "expected a list of strings")

    return ValuationConfig(
        status_keywords=status_keywords,
        damage_keywords=(
            _keywords(section["damage_keywords"], "valuation.damage_keywords")
            if "damage_keywords" in section
            else defaults.damage_keywords
        ),
        lost_statuses=tuple(_text(v, "valuation.lost_statuses").lower() for v in lost),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    section = _section(data, "logging", {"level"})
    if "level" not in section:
        return LoggingConfig()
    level = _text(section["level"], "logging.level").upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError("logging.level", f"unknown level {level!r}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any], source: str | None = None) -> InventoryConfig:
    """
    Parse a whole document.

    Raises:
        ConfigurationError: unknown section or malformed value.
    """
    unknown = set(data) - {"database", "fulfillment", "valuation", "logging"}
    if unknown:
        raise ConfigurationError("<root>", f"unknown sections {sorted(unknown)}")
    return InventoryConfig(
        database=parse_database(data),
        fulfillment=parse_fulfillment(data),
        valuation=parse_valuation(data),
        logging=parse_logging(data),
        source=source,
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
