"""
Apposaur referral SDK.

Referral attribution, idempotent purchase reporting and signed-offer reward
redemption for subscription apps.
"""

from apposaur.sdk import ApposaurSDK, create_sdk
from apposaur.core.exceptions import (
    ApposaurError,
    ConfigurationError,
    NotInitializedError,
    RequestError,
    ResponseParseError,
    StorageError,
    PreconditionError,
    MissingRegisteredUserError,
    MissingActiveSubscriptionError,
    NoPurchasesFound,
    RedemptionError,
)
from apposaur.core.kv_store import KVStore, MemoryKVStore, RedisKVStore
from apposaur.core.results import OperationResult, Outcome
from apposaur.platform.base import (
    PurchasePlatform,
    Purchase,
    Product,
    OfferDescriptor,
    SubscriptionRequest,
    PurchaseResult,
)
from apposaur.services.rewards.service import Reward, RewardsResponse, RedemptionResult

__version__ = "0.1.0"

__all__ = [
    "ApposaurSDK",
    "create_sdk",
    "ApposaurError",
    "ConfigurationError",
    "NotInitializedError",
    "RequestError",
    "ResponseParseError",
    "StorageError",
    "PreconditionError",
    "MissingRegisteredUserError",
    "MissingActiveSubscriptionError",
    "NoPurchasesFound",
    "RedemptionError",
    "KVStore",
    "MemoryKVStore",
    "RedisKVStore",
    "OperationResult",
    "Outcome",
    "PurchasePlatform",
    "Purchase",
    "Product",
    "OfferDescriptor",
    "SubscriptionRequest",
    "PurchaseResult",
    "Reward",
    "RewardsResponse",
    "RedemptionResult",
]
