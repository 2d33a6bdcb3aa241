"""
Typed access to the SDK records kept in the persistent KV store.

Records:
- ReferralLink: one key holding JSON {"code", "referred_by_user_id"}, so a
  code can never be stored without its referrer id. Devices that still carry
  the legacy two-key layout are read transparently (both keys required).
- RegisteredUser: two keys (user id, user code) written in one multi_set.
- Processed transactions: JSON array of transaction ids, duplicate-free,
  insertion ordered.

Any store exception is re-raised as StorageError.
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from apposaur.constants import storage_keys as keys
from apposaur.core.exceptions import StorageError
from apposaur.core.kv_store import KVStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferralLink:
    """Referral code and the app user id of whoever owns it."""
    code: str
    referred_by_user_id: str


@dataclass(frozen=True)
class RegisteredUser:
    """Identity returned by the backend on registration."""
    app_user_id: str
    code: str


class SdkStateRepository:
    """Reads and writes SDK records; the only code that touches key names."""

    def __init__(self, store: KVStore):
        self.store = store

    # ------------------------------------------------------------------
    # Referral link
    # ------------------------------------------------------------------

    async def get_referral_link(self) -> Optional[ReferralLink]:
        raw = await self._get(keys.REFERRAL_LINK_KEY)
        if raw:
            try:
                data = json.loads(raw)
                code = data.get("code")
                referred_by = data.get("referred_by_user_id")
            except (ValueError, AttributeError):
                logger.error("REFERRAL_LINK_CORRUPT [action=ignored]")
                return None
            if code and referred_by:
                return ReferralLink(code=code, referred_by_user_id=referred_by)
            return None

        legacy = await self._multi_get(
            [keys.LEGACY_REFERRAL_CODE_KEY, keys.LEGACY_REFERRED_BY_USER_ID_KEY]
        )
        code = legacy.get(keys.LEGACY_REFERRAL_CODE_KEY)
        referred_by = legacy.get(keys.LEGACY_REFERRED_BY_USER_ID_KEY)
        if code and referred_by:
            return ReferralLink(code=code, referred_by_user_id=referred_by)
        return None

    async def save_referral_link(self, link: ReferralLink) -> None:
        value = json.dumps({"code": link.code, "referred_by_user_id": link.referred_by_user_id})
        await self._set(keys.REFERRAL_LINK_KEY, value)

    async def clear_referral_link(self) -> None:
        await self._multi_remove([
            keys.REFERRAL_LINK_KEY,
            keys.LEGACY_REFERRAL_CODE_KEY,
            keys.LEGACY_REFERRED_BY_USER_ID_KEY,
        ])

    # ------------------------------------------------------------------
    # Registered user
    # ------------------------------------------------------------------

    async def get_app_user_id(self) -> Optional[str]:
        return await self._get(keys.APP_USER_ID_KEY) or None

    async def get_app_user_code(self) -> Optional[str]:
        return await self._get(keys.APP_USER_CODE_KEY) or None

    async def save_registered_user(self, user: RegisteredUser) -> None:
        await self._multi_set({
            keys.APP_USER_ID_KEY: user.app_user_id,
            keys.APP_USER_CODE_KEY: user.code,
        })

    # ------------------------------------------------------------------
    # Processed transactions
    # ------------------------------------------------------------------

    async def get_processed_transactions(self) -> List[str]:
        raw = await self._get(keys.PROCESSED_TRANSACTIONS_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if not isinstance(data, list):
            # Unreadable ledger: start over rather than block attribution forever
            logger.error("PROCESSED_TRANSACTIONS_CORRUPT [action=reset]")
            return []
        result: List[str] = []
        for item in data:
            if isinstance(item, str) and item not in result:
                result.append(item)
        return result

    async def save_processed_transactions(self, transaction_ids: List[str]) -> None:
        await self._set(keys.PROCESSED_TRANSACTIONS_KEY, json.dumps(transaction_ids))

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    async def _get(self, key: str) -> Optional[str]:
        try:
            return await self.store.get(key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def _set(self, key: str, value: str) -> None:
        try:
            await self.store.set(key, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    async def _multi_get(self, key_list: List[str]):
        try:
            return await self.store.multi_get(key_list)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {key_list}: {e}") from e

    async def _multi_set(self, items) -> None:
        try:
            await self.store.multi_set(items)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write {list(items)}: {e}") from e

    async def _multi_remove(self, key_list: List[str]) -> None:
        try:
            await self.store.multi_remove(key_list)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to remove {key_list}: {e}") from e
