"""
Configuration loading: packaged defaults, override files, and rejection of
malformed values.
"""

import logging
from decimal import Decimal

import pytest

from inventory_config import DEFAULTS_PATH, bridges, get_active_config
from inventory_config.bridges import (
    build_damage_rules,
    build_fulfillment_resolver,
    build_status_rules,
    build_valuation_service,
)
from inventory_config.loader import compute_checksum, load_yaml_file, parse_config
from inventory_config.schema import InventoryConfig
from inventory_engines.valuation import OrderStatus
from inventory_kernel.exceptions import ConfigurationError


def _write(tmp_path, text, name="inventory.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config()

        assert config.source == str(DEFAULTS_PATH)
        assert config.fulfillment.stock_floor == Decimal("0")
        assert config.valuation.status_keywords.returned == ("return",)
        assert config.valuation.lost_statuses == ("undelivered",)
        assert config.database.pool_size == 20
        assert config.logging.level == "INFO"

    def test_defaults_file_matches_schema_defaults(self):
        parsed = parse_config(load_yaml_file(DEFAULTS_PATH))
        schema = InventoryConfig()

        assert parsed.database == schema.database
        assert parsed.fulfillment == schema.fulfillment
        assert parsed.valuation == schema.valuation
        assert parsed.logging == schema.logging

    def test_logs_config_loaded(self, captured_logs):
        config = get_active_config()

        record = [r for r in captured_logs() if r["message"] == "config_loaded"][-1]
        assert record["checksum"] == config.checksum
        assert record["config_source"] == str(DEFAULTS_PATH)


class TestOverrides:
    def test_partial_file_keeps_other_defaults(self, tmp_path):
        path = _write(
            tmp_path,
            """
fulfillment:
  stock_floor: 2.5
valuation:
  status_keywords:
    rto: [RTO, Undeliverable]
logging:
  level: debug
""",
        )

        config = get_active_config(path)

        assert config.fulfillment.stock_floor == Decimal("2.5")
        assert config.valuation.status_keywords.rto == ("rto", "undeliverable")
        assert config.valuation.status_keywords.delivered == ("delivered",)
        assert config.logging.level == "DEBUG"
        assert config.database.url == "postgresql://localhost/inventory"

    def test_empty_file(self, tmp_path):
        config = get_active_config(_write(tmp_path, ""))

        assert config.fulfillment.stock_floor == Decimal("0")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_checksum_tracks_content(self, tmp_path):
        a = get_active_config(_write(tmp_path, "logging: {level: INFO}\n", "a.yaml"))
        b = get_active_config(_write(tmp_path, "logging:\n  level: INFO\n", "b.yaml"))
        c = get_active_config(_write(tmp_path, "logging: {level: ERROR}\n", "c.yaml"))

        assert a.checksum == b.checksum
        assert a.checksum != c.checksum
        assert compute_checksum({"x": 1, "y": 2}) == compute_checksum({"y": 2, "x": 1})


class TestMalformed:
    @pytest.mark.parametrize(
        "text, key",
        [
            ("database: [1, 2]\n", "database"),
            ("database: {pool_size: 0}\n", "database.pool_size"),
            ("database: {echo: 'yes'}\n", "database.echo"),
            ("database: {hostname: db}\n", "database"),
            ("fulfillment: {stock_floor: -1}\n", "fulfillment.stock_floor"),
            ("fulfillment: {stock_floor: lots}\n", "fulfillment.stock_floor"),
            ("fulfillment: {stock_floor: .nan}\n", "fulfillment.stock_floor"),
            ("valuation: {status_keywords: {delivered: []}}\n", "valuation.status_keywords.delivered"),
            ("valuation: {status_keywords: {cancelled: [x]}}\n", "status_keywords"),
            ("valuation: {lost_statuses: lost}\n", "valuation.lost_statuses"),
            ("logging: {level: LOUD}\n", "logging.level"),
            ("metrics: {enabled: true}\n", "<root>"),
        ],
    )
    def test_rejected_with_key(self, tmp_path, text, key):
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(_write(tmp_path, text))
        assert exc_info.value.key == key
        assert exc_info.value.code == "CONFIGURATION_ERROR"

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError):
            get_active_config(_write(tmp_path, "database: [unclosed\n"))

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError):
            get_active_config(_write(tmp_path, "- a\n- b\n"))


class TestBridges:
    def test_status_and_damage_rules(self, tmp_path):
        config = get_active_config(
            _write(
                tmp_path,
                """
valuation:
  status_keywords:
    delivered: [completed]
  damage_keywords: [broken]
""",
            )
        )

        status_rules = build_status_rules(config)
        damage_rules = build_damage_rules(config)

        assert status_rules.classify("Order Completed") == OrderStatus.DELIVERED
        assert status_rules.classify("Delivered") == OrderStatus.OTHER
        assert damage_rules.damage_keywords == ("broken",)

    def test_fulfillment_resolver_gets_floor(self, session, tmp_path):
        config = get_active_config(_write(tmp_path, "fulfillment: {stock_floor: '3'}\n"))

        resolver = build_fulfillment_resolver(session, config)

        assert resolver.stock_floor == Decimal("3")

    def test_valuation_service_gets_rules(self, session, tmp_path):
        config = get_active_config(
            _write(tmp_path, "valuation: {status_keywords: {shipped: [dispatched]}}\n")
        )

        service = build_valuation_service(session, config)

        assert service.status_rules.classify("Dispatched") == OrderStatus.SHIPPED

    def test_init_database_passes_pool_settings(self, monkeypatch, tmp_path):
        config = get_active_config(
            _write(tmp_path, "database: {url: 'sqlite:///inv.db', pool_size: 7, echo: true}\n")
        )
        calls = []
        monkeypatch.setattr(
            bridges, "init_engine_from_url", lambda url, **kwargs: calls.append((url, kwargs))
        )

        bridges.init_database(config)

        url, kwargs = calls[0]
        assert url == "sqlite:///inv.db"
        assert kwargs["pool_size"] == 7
        assert kwargs["echo"] is True

    def test_apply_logging_uses_configured_level(self, monkeypatch, tmp_path):
        config = get_active_config(_write(tmp_path, "logging: {level: warning}\n"))
        levels = []
        monkeypatch.setattr(bridges, "configure_logging", lambda *, level: levels.append(level))

        bridges.apply_logging(config)

        assert levels == [logging.WARNING]
