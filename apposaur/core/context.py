"""
Shared SDK state.

One SdkContext is built per ApposaurSDK and handed to every service. It holds
the platform binding, the persisted-state repository, the API client (set by
initialize) and the in-memory active subscription product.
"""

from dataclasses import dataclass
from typing import Optional

from apposaur.core.exceptions import NotInitializedError
from apposaur.core.state_repository import SdkStateRepository
from apposaur.platform.base import PurchasePlatform
from apposaur.services.api_client import ApiClient


@dataclass
class SdkContext:
    platform: PurchasePlatform
    repository: SdkStateRepository
    api: Optional[ApiClient] = None
    # "" means unknown; reward operations are disabled until it is set
    active_subscription_product_id: str = ""

    def require_api(self) -> ApiClient:
        if self.api is None:
            raise NotInitializedError("ApposaurSDK.initialize() has not completed")
        return self.api
