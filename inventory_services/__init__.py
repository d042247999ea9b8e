"""Services composed over the kernel and the pure engines."""

from inventory_services.valuation_service import ValuationService

__all__ = ["ValuationService"]
