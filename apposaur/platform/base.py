"""
Platform in-app purchase binding.

The SDK never talks to StoreKit directly. The host application supplies an
object implementing PurchasePlatform that wraps its native binding; the SDK
only calls the four operations below and reads the listed fields.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class Purchase:
    """An owned purchase as reported by the platform."""
    product_id: str
    transaction_id: Optional[str] = None
    original_transaction_id: Optional[str] = None


@dataclass(frozen=True)
class Product:
    """A catalog entry returned by a product lookup."""
    product_id: str
    title: str = ""
    price: str = ""


@dataclass(frozen=True)
class OfferDescriptor:
    """Signed promotional offer attached to a subscription request."""
    identifier: str
    key_identifier: str
    nonce: str
    signature: str
    timestamp: int


@dataclass(frozen=True)
class SubscriptionRequest:
    """Parameters of a platform subscription purchase."""
    sku: str
    app_account_token: str
    offer: Optional[OfferDescriptor] = None


@dataclass(frozen=True)
class PurchaseResult:
    """
    Platform answer to a subscription request.

    transaction_id is None when the purchase did not complete (cancelled,
    deferred, pending approval).
    """
    product_id: str
    transaction_id: Optional[str] = None


@runtime_checkable
class PurchasePlatform(Protocol):
    """Operations the SDK needs from the platform purchase binding."""

    # Platform tag sent as x-sdk-platform (e.g. "ios")
    name: str

    async def init_connection(self) -> bool:
        ...

    async def get_available_purchases(self) -> List[Purchase]:
        ...

    async def get_products(self, skus: Sequence[str]) -> List[Product]:
        ...

    async def request_subscription(self, request: SubscriptionRequest) -> Optional[PurchaseResult]:
        ...
