"""
Referral Service - referral link and registered user identity

Rules:
- A referral link is persisted only after the backend returns the referrer's
  app user id, and always as one record (code + referrer id together)
- Invalid or self-referential codes leave persisted state untouched
- Registration is best-effort: failures are logged and returned as a
  recoverable result, and a failed registration never overwrites the
  previously registered user
"""

import logging
from typing import Any, Dict, Optional

from apposaur.core.context import SdkContext
from apposaur.core.exceptions import (
    ApposaurError,
    NotInitializedError,
    ResponseParseError,
    StorageError,
)
from apposaur.core.results import OperationResult
from apposaur.core.state_repository import ReferralLink, RegisteredUser

logger = logging.getLogger(__name__)


class ReferralService:
    """Referral link validation and user registration."""

    def __init__(self, context: SdkContext):
        self.context = context

    @property
    def repository(self):
        return self.context.repository

    async def validate_referral_code(self, code: str) -> bool:
        """
        Validate a referral code with the backend and persist the link.

        Returns:
            True if the code belongs to another user and the link was saved,
            False if the code is blank, the user's own code, or rejected by
            the backend (nothing is persisted in these cases)

        Raises:
            RequestError / ResponseParseError: Backend unreachable or invalid
            StorageError: The link could not be persisted
        """
        code = (code or "").strip()
        if not code:
            return False

        own_code = await self.repository.get_app_user_code()
        if own_code and own_code == code:
            logger.warning("REFERRAL_SELF_ATTEMPT [reason=own_code]")
            return False

        api = self.context.require_api()
        data = await api.request("/referral/validate", "POST", {"code": code})

        referred_by = data.get("referred_app_user_id") if isinstance(data, dict) else None
        if not referred_by or not isinstance(referred_by, str):
            logger.info("REFERRAL_CODE_REJECTED")
            return False

        await self.repository.save_referral_link(
            ReferralLink(code=code, referred_by_user_id=referred_by)
        )
        logger.info(f"REFERRAL_LINK_SAVED [referred_by={referred_by}]")
        return True

    async def clear_referral_code(self) -> None:
        """Remove the persisted referral link. Idempotent; errors are only logged."""
        try:
            await self.repository.clear_referral_link()
        except StorageError as e:
            logger.error(f"REFERRAL_LINK_CLEAR_FAILED [error={e}]")

    async def register_user(
        self,
        user_id: str,
        original_transaction_id: Optional[str] = None,
    ) -> OperationResult:
        """
        Register the host app's user with the backend.

        Sends the referrer id from the persisted referral link, if any.
        On success the returned app user id and code are persisted together.

        Args:
            user_id: The host application's own user identifier
            original_transaction_id: App Store original transaction id of the
                user's subscription, if known

        Returns:
            OperationResult.ok(RegisteredUser) on success, otherwise a
            recoverable failure (including a call before initialize()).
            Never raises; a blank user_id is a fatal result whose unwrap()
            raises ValueError.
        """
        if not user_id or not user_id.strip():
            return OperationResult.fatal(
                ValueError("user_id must be a non-empty string"), "invalid_argument"
            )
        try:
            api = self.context.require_api()
        except NotInitializedError as e:
            logger.warning("REGISTER_USER_SKIPPED [reason=not_initialized]")
            return OperationResult.recoverable(e, "not_initialized")

        try:
            link = await self.repository.get_referral_link()
        except StorageError as e:
            logger.error(f"REGISTER_USER_FAILED [stage=read_referral_link, error={e}]")
            return OperationResult.recoverable(e, "referral_link_unavailable")

        body: Dict[str, Any] = {"external_user_id": user_id}
        if original_transaction_id:
            body["original_transaction_id"] = original_transaction_id
        if link is not None:
            body["referred_app_user_id"] = link.referred_by_user_id

        try:
            data = await api.request("/referral/register", "POST", body)
        except ApposaurError as e:
            logger.error(f"REGISTER_USER_FAILED [stage=request, error={e}]")
            return OperationResult.recoverable(e, "request_failed")

        app_user_id = data.get("app_user_id") if isinstance(data, dict) else None
        code = data.get("code") if isinstance(data, dict) else None
        if not isinstance(app_user_id, str) or not app_user_id or not isinstance(code, str) or not code:
            error = ResponseParseError(
                "Registration response is missing app_user_id or code",
                endpoint="/referral/register",
                status=200,
            )
            logger.error("REGISTER_USER_FAILED [stage=response, reason=missing_fields]")
            return OperationResult.recoverable(error, "invalid_response")

        user = RegisteredUser(app_user_id=app_user_id, code=code)
        try:
            await self.repository.save_registered_user(user)
        except StorageError as e:
            logger.error(f"REGISTER_USER_FAILED [stage=persist, error={e}]")
            return OperationResult.recoverable(e, "persist_failed")

        logger.info(
            f"USER_REGISTERED [app_user_id={app_user_id}, referred={link is not None}]",
            extra={"component": "referrals", "operation": "register_user", "outcome": "success"},
        )
        return OperationResult.ok(user)

    async def get_registered_user_referral_code(self) -> Optional[str]:
        """
        Read the registered user's own referral code.

        Raises:
            StorageError: If the store is unavailable
        """
        return await self.repository.get_app_user_code()
