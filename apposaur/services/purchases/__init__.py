"""
Purchase Attribution Service Layer

Deduplicated, at-most-once purchase reporting.
"""

from apposaur.services.purchases.service import PurchaseAttributionService

__all__ = [
    "PurchaseAttributionService",
]
