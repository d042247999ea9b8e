"""
Inventory Kernel

Ledger-backed inventory items, sku mappings with versioned cost snapshots,
cascade recalculation of mapping costs, and batch order fulfillment.
"""

__version__ = "0.1.0"
