"""
Reward Service - reward catalog and signed-offer redemption

A signed offer does not grant anything by itself: the reward is confirmed to
the backend only after the platform reports a completed purchase
(a transaction id). Every failure before that point aborts the redemption
without calling /referral/rewards/redeem.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from apposaur.core.context import SdkContext
from apposaur.core.exceptions import (
    ApposaurError,
    MissingActiveSubscriptionError,
    MissingRegisteredUserError,
    NotInitializedError,
    RedemptionError,
    StorageError,
)
from apposaur.platform.base import OfferDescriptor, SubscriptionRequest

logger = logging.getLogger(__name__)


# ====================================================================================
# Result Types
# ====================================================================================

@dataclass(frozen=True)
class Reward:
    reward_id: str
    offer_name: str


@dataclass
class RewardsResponse:
    rewards: List[Reward] = field(default_factory=list)


@dataclass(frozen=True)
class SignedOffer:
    """Single-use offer signature minted by the backend for one redemption."""
    offer_id: str
    key_identifier: str
    nonce: str
    signature: str
    timestamp: int

    @classmethod
    def from_payload(cls, data: Any) -> "SignedOffer":
        """
        Raises:
            RedemptionError: If any field is missing or malformed
        """
        if not isinstance(data, dict):
            raise RedemptionError("Signed offer response is not an object")
        values = {}
        for name in ("offerId", "keyIdentifier", "nonce", "signature"):
            value = data.get(name)
            if not isinstance(value, str) or not value:
                raise RedemptionError(f"Signed offer is missing {name}")
            values[name] = value
        try:
            timestamp = int(data.get("timestamp"))
        except (TypeError, ValueError):
            raise RedemptionError("Signed offer has an invalid timestamp")
        return cls(
            offer_id=values["offerId"],
            key_identifier=values["keyIdentifier"],
            nonce=values["nonce"],
            signature=values["signature"],
            timestamp=timestamp,
        )

    def to_offer_descriptor(self) -> OfferDescriptor:
        return OfferDescriptor(
            identifier=self.offer_id,
            key_identifier=self.key_identifier,
            nonce=self.nonce,
            signature=self.signature,
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class RedemptionResult:
    """Outcome of redeem_reward_offer"""
    reward_id: str
    product_id: str
    redeemed: bool
    transaction_id: Optional[str] = None


# ====================================================================================
# Service
# ====================================================================================

class RewardService:
    """Reward catalog lookup and redemption."""

    def __init__(self, context: SdkContext):
        self.context = context

    async def get_rewards(self) -> RewardsResponse:
        """
        Fetch rewards available to the registered user for the active product.

        Returns an empty list, without any request, when the user is not
        registered or no active subscription product is known. Backend and
        storage failures are logged and also yield an empty list.
        """
        try:
            app_user_id = await self.context.repository.get_app_user_id()
        except StorageError as e:
            logger.error(f"GET_REWARDS_FAILED [stage=read_user, error={e}]")
            return RewardsResponse()
        product_id = self.context.active_subscription_product_id
        if not app_user_id or not product_id:
            return RewardsResponse()

        try:
            api = self.context.require_api()
        except NotInitializedError:
            logger.warning(f"GET_REWARDS_SKIPPED [reason=not_initialized, product_id={product_id}]")
            return RewardsResponse()
        try:
            data = await api.request(
                "/referral/rewards",
                "GET",
                params={"app_user_id": app_user_id, "product_id": product_id},
            )
        except ApposaurError as e:
            logger.error(f"GET_REWARDS_FAILED [stage=request, product_id={product_id}, error={e}]")
            return RewardsResponse()

        items = data.get("rewards") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.warning("GET_REWARDS_INVALID_RESPONSE [reason=missing_rewards]")
            return RewardsResponse()

        rewards = []
        for item in items:
            if not isinstance(item, dict):
                continue
            reward_id = item.get("app_reward_id")
            offer_name = item.get("offer_name")
            if not reward_id or not offer_name:
                logger.warning("GET_REWARDS_ITEM_SKIPPED [reason=missing_fields]")
                continue
            rewards.append(Reward(reward_id=str(reward_id), offer_name=str(offer_name)))
        return RewardsResponse(rewards=rewards)

    async def redeem_reward_offer(self, reward_id: str) -> RedemptionResult:
        """
        Redeem a reward through a signed subscription offer.

        Steps:
            a. platform catalog lookup confirms the product is purchasable
            b. backend signs an offer for (reward, product, user)
            c. platform subscription purchase with the signed offer,
               app_account_token = app user id
            d. only if (c) returned a transaction id: confirm to the backend

        Returns:
            RedemptionResult; redeemed=False when the platform purchase did
            not complete (no transaction id), in which case nothing is confirmed

        Raises:
            MissingRegisteredUserError: No registered user
            MissingActiveSubscriptionError: No active subscription product
            RedemptionError: Product not purchasable, malformed signed offer,
                or the platform purchase request failed
            RequestError / ResponseParseError: Signing or confirmation failed
        """
        if not reward_id:
            raise ValueError("reward_id is required")

        app_user_id = await self.context.repository.get_app_user_id()
        if not app_user_id:
            raise MissingRegisteredUserError("App user ID not found")
        # Bind the whole flow to the product known now
        product_id = self.context.active_subscription_product_id
        if not product_id:
            raise MissingActiveSubscriptionError("No active subscription found")
        api = self.context.require_api()
        platform = self.context.platform

        # a. Catalog lookup
        try:
            products = await platform.get_products([product_id])
        except Exception as e:
            logger.error(f"REDEEM_ABORTED [stage=product_lookup, reward_id={reward_id}, error={e}]")
            raise RedemptionError(f"Product lookup failed for {product_id}") from e
        if not any(p.product_id == product_id for p in products or []):
            logger.error(f"REDEEM_ABORTED [stage=product_lookup, reward_id={reward_id}, reason=not_found]")
            raise RedemptionError(f"Product {product_id} is not available for purchase")

        # b. Signed offer
        payload = await api.request(
            "/referral/rewards/sign",
            "POST",
            {"app_reward_id": reward_id, "product_id": product_id, "app_user_id": app_user_id},
        )
        signed_offer = SignedOffer.from_payload(payload)

        # c. Platform purchase
        request = SubscriptionRequest(
            sku=product_id,
            app_account_token=app_user_id,
            offer=signed_offer.to_offer_descriptor(),
        )
        try:
            purchase = await platform.request_subscription(request)
        except Exception as e:
            logger.error(f"REDEEM_ABORTED [stage=purchase, reward_id={reward_id}, error={type(e).__name__}: {str(e)[:100]}]")
            raise RedemptionError("Subscription purchase with offer failed") from e

        transaction_id = purchase.transaction_id if purchase is not None else None
        if not transaction_id:
            logger.warning(f"REDEEM_NOT_COMPLETED [reward_id={reward_id}, product_id={product_id}]")
            return RedemptionResult(reward_id=reward_id, product_id=product_id, redeemed=False)

        # d. Confirm, only with platform purchase evidence
        try:
            await api.request("/referral/rewards/redeem", "POST", {"app_reward_id": reward_id})
        except ApposaurError:
            logger.critical(
                f"REDEEM_CONFIRM_FAILED [reward_id={reward_id}, transaction_id={transaction_id}]",
                extra={"component": "rewards", "operation": "redeem_reward_offer", "outcome": "failed"},
            )
            raise

        logger.info(
            f"REWARD_REDEEMED [reward_id={reward_id}, product_id={product_id}, transaction_id={transaction_id}]",
            extra={"component": "rewards", "operation": "redeem_reward_offer", "outcome": "success"},
        )
        return RedemptionResult(
            reward_id=reward_id,
            product_id=product_id,
            redeemed=True,
            transaction_id=transaction_id,
        )
