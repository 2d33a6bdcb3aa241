"""
ApposaurSDK: public entry point.

Build one instance at application startup and pass it to call sites:

    sdk = create_sdk(platform=my_storekit_binding)
    await sdk.initialize(api_key)
    await sdk.register_user("user-42")
    await sdk.attribute_purchase(product_id, transaction_id)

Strict operations (initialize, validate_referral_code, redeem_reward_offer)
raise. Best-effort operations (register_user, attribute_purchase) return an
OperationResult and never raise, not even before initialize(). Invalid
arguments come back as fatal results, which unwrap() raises. get_rewards
degrades to an empty list.
"""

import logging
from typing import Optional

import httpx

from apposaur import config
from apposaur.core.context import SdkContext
from apposaur.core.exceptions import ApposaurError, ConfigurationError
from apposaur.core.kv_store import KVStore, MemoryKVStore, RedisKVStore
from apposaur.core.results import OperationResult
from apposaur.core.state_repository import SdkStateRepository
from apposaur.platform.base import PurchasePlatform
from apposaur.services.api_client import ApiClient
from apposaur.services.purchases.service import PurchaseAttributionService
from apposaur.services.referrals.service import ReferralService
from apposaur.services.rewards.service import RedemptionResult, RewardService, RewardsResponse

logger = logging.getLogger(__name__)


class ApposaurSDK:
    """Referral attribution and reward redemption for one app process."""

    def __init__(
        self,
        platform: PurchasePlatform,
        store: KVStore,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        retry_backoff: Optional[float] = None,
        record_failed_reports: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        owns_store: bool = False,
    ):
        self.context = SdkContext(platform=platform, repository=SdkStateRepository(store))
        self.referrals = ReferralService(self.context)
        self.purchases = PurchaseAttributionService(
            self.context, record_failed_reports=record_failed_reports
        )
        self.rewards = RewardService(self.context)
        # Stores built by create_sdk are closed with the SDK
        self._owns_store = owns_store
        self._client_options = {
            "base_url": base_url,
            "timeout": timeout,
            "retries": retries,
            "retry_delay": retry_delay,
            "retry_backoff": retry_backoff,
            "transport": transport,
        }

    @property
    def is_initialized(self) -> bool:
        return self.context.api is not None

    @property
    def active_subscription_product_id(self) -> str:
        return self.context.active_subscription_product_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, api_key: str) -> None:
        """
        Connect the platform binding, validate the API key and discover the
        active subscription.

        Calling it again replaces the credential and resets the in-memory
        active subscription product.

        Raises:
            ConfigurationError: Unsupported platform, platform connection
                refused, or API key rejected / not verifiable
        """
        if not api_key:
            raise ConfigurationError("API key is required")
        platform = self.context.platform
        platform_name = getattr(platform, "name", "")
        if platform_name not in config.SUPPORTED_PLATFORMS:
            raise ConfigurationError(f"Platform {platform_name!r} is not supported")

        await self._close_api()
        self.context.active_subscription_product_id = ""

        api = ApiClient(api_key, platform_name, **self._client_options)
        try:
            try:
                connected = await platform.init_connection()
            except Exception as e:
                raise ConfigurationError("Failed to initialize In App Purchase") from e
            if not connected:
                raise ConfigurationError("Failed to initialize In App Purchase")
            await self._validate_api_key(api)
        except ConfigurationError as e:
            logger.error(f"SDK_INITIALIZE_FAILED [platform={platform_name}, error={e}]")
            await api.aclose()
            raise

        self.context.api = api
        await self.purchases.refresh_active_subscription()
        logger.info(f"SDK_INITIALIZED [platform={platform_name}]")

    async def _validate_api_key(self, api: ApiClient) -> None:
        try:
            data = await api.request("/referral/key", "POST")
        except ApposaurError as e:
            logger.error(f"API_KEY_VERIFY_FAILED [error={e}]")
            raise ConfigurationError("Failed to verify API key") from e
        if not isinstance(data, dict) or data.get("valid") is not True:
            logger.error("API_KEY_INVALID")
            raise ConfigurationError("Invalid API key")

    async def aclose(self) -> None:
        """
        Close the HTTP client, and the store when the SDK created it.

        The SDK must be initialized again before network use; an owned
        store is not reopened.
        """
        await self._close_api()
        if self._owns_store:
            self._owns_store = False
            close = getattr(self.context.repository.store, "aclose", None)
            if close is not None:
                await close()

    async def _close_api(self) -> None:
        api = self.context.api
        self.context.api = None
        if api is not None:
            await api.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    # ------------------------------------------------------------------
    # Referrals
    # ------------------------------------------------------------------

    async def validate_referral_code(self, code: str) -> bool:
        return await self.referrals.validate_referral_code(code)

    async def clear_referral_code(self) -> None:
        await self.referrals.clear_referral_code()

    async def register_user(
        self,
        user_id: str,
        original_transaction_id: Optional[str] = None,
    ) -> OperationResult:
        return await self.referrals.register_user(user_id, original_transaction_id)

    async def get_registered_user_referral_code(self) -> Optional[str]:
        return await self.referrals.get_registered_user_referral_code()

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    async def attribute_purchase(self, product_id: str, transaction_id: str) -> OperationResult:
        return await self.purchases.attribute_purchase(product_id, transaction_id)

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------

    async def get_rewards(self) -> RewardsResponse:
        return await self.rewards.get_rewards()

    async def redeem_reward_offer(self, reward_id: str) -> RedemptionResult:
        return await self.rewards.redeem_reward_offer(reward_id)


def create_sdk(
    platform: PurchasePlatform,
    store: Optional[KVStore] = None,
    **options,
) -> ApposaurSDK:
    """
    Build the SDK instance for this process.

    Without an explicit store, APPOSAUR_REDIS_URL selects a RedisKVStore;
    otherwise state lives in memory only and is lost on restart. A store
    created here is closed by ApposaurSDK.aclose(); an explicit store stays
    owned by the caller.
    """
    if store is None:
        if config.REDIS_URL:
            store = RedisKVStore.from_url(config.REDIS_URL)
        else:
            logger.warning("SDK_STORE_EPHEMERAL [reason=no_store_and_no_redis_url]")
            store = MemoryKVStore()
        options["owns_store"] = True
    return ApposaurSDK(platform, store, **options)
