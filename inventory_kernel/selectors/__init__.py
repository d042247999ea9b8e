"""Read-only query selectors."""

from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.selectors.mapping_selector import MappingSelector

__all__ = ["LedgerSelector", "MappingSelector"]
