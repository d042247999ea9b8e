"""
inventory_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration.  No
    other component reads configuration files or environment variables.

Architecture position:
    Configuration -- sits above ``inventory_kernel`` and ``inventory_engines``.
    The kernel MUST NEVER import from ``inventory_config``; ``bridges``
    translates the config into kernel and engine inputs.

Failure modes:
    - ``FileNotFoundError`` -- the given path does not exist.
    - ``ConfigurationError`` -- malformed YAML or values.

Audit relevance:
    Every successful call logs ``config_loaded`` with the source and the
    checksum of the parsed document.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import load_yaml_file, parse_config
from inventory_config.schema import InventoryConfig

_logger = logging.getLogger("inventory_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> InventoryConfig:
    """
    Load the configuration at ``path``, or the packaged defaults.

    Keys missing from ``path`` take their default value.
    """
    source = Path(path) if path is not None else DEFAULTS_PATH
    config = parse_config(load_yaml_file(source), source=str(source))
    _logger.info(
        "config_loaded",
        extra={
            "config_source": config.source,
            "checksum": config.checksum,
            "stock_floor": str(config.fulfillment.stock_floor),
            "log_level": config.logging.level,
        },
    )
    return config


__all__ = ["InventoryConfig", "get_active_config", "DEFAULTS_PATH"]
