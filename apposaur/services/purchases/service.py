"""
Purchase Attribution Service

Links a completed platform purchase to the registered user and reports it to
the backend at most once per transaction id per device.

Per transaction id:  Unseen → Reporting → Recorded

attribute_purchase(product_id, transaction_id):
1. No registered user → no-op (nothing to attribute to)
2. Transaction id already recorded → no-op
3. Active subscription product := product_id (in memory, unconditional)
4. POST /referral/purchase; failure is logged, never raised
5. Record the transaction id in the persisted ledger

Failed reports: with record_failed_reports=True (default) a transaction whose
report failed is still recorded, so it is never reported twice but may never
be reported at all. With False it is left unrecorded and the next call for
the same id reports again.

Concurrency: steps 2-5 run under a per-transaction-id lock, and the ledger
read-append-write runs under one ledger lock, so neither the same id nor two
different ids can race on the persisted set.
"""

import asyncio
import logging
from typing import Optional

from apposaur import config
from apposaur.core.context import SdkContext
from apposaur.core.exceptions import ApposaurError, NoPurchasesFound, NotInitializedError, StorageError
from apposaur.core.locks import KeyedLock
from apposaur.core.results import OperationResult

logger = logging.getLogger(__name__)


class PurchaseAttributionService:
    """Deduplicated purchase attribution and active subscription discovery."""

    def __init__(self, context: SdkContext, record_failed_reports: Optional[bool] = None):
        self.context = context
        self.record_failed_reports = (
            config.RECORD_FAILED_REPORTS if record_failed_reports is None else record_failed_reports
        )
        self._in_flight = KeyedLock()
        self._ledger_lock = asyncio.Lock()

    @property
    def repository(self):
        return self.context.repository

    async def attribute_purchase(self, product_id: str, transaction_id: str) -> OperationResult:
        """
        Attribute a purchase to the registered user.

        Returns:
            OperationResult.ok with value=transaction_id when reported and
            recorded, ok with a reason for deliberate no-ops, or a recoverable
            failure (including a call before initialize()). Never raises;
            empty product_id or transaction_id is a fatal result whose
            unwrap() raises ValueError.
        """
        if not product_id or not transaction_id:
            return OperationResult.fatal(
                ValueError("product_id and transaction_id are required"), "invalid_argument"
            )

        try:
            app_user_id = await self.repository.get_app_user_id()
        except StorageError as e:
            logger.error(f"ATTRIBUTION_SKIPPED [transaction_id={transaction_id}, reason=user_unavailable, error={e}]")
            return OperationResult.recoverable(e, "user_unavailable")
        if not app_user_id:
            logger.debug(f"ATTRIBUTION_SKIPPED [transaction_id={transaction_id}, reason=unregistered_user]")
            return OperationResult.ok(reason="unregistered_user")

        try:
            api = self.context.require_api()
        except NotInitializedError as e:
            logger.warning(f"ATTRIBUTION_SKIPPED [transaction_id={transaction_id}, reason=not_initialized]")
            return OperationResult.recoverable(e, "not_initialized")

        async with self._in_flight.hold(transaction_id):
            try:
                processed = await self.repository.get_processed_transactions()
            except StorageError as e:
                # Without the ledger a report could be a duplicate
                logger.error(f"ATTRIBUTION_SKIPPED [transaction_id={transaction_id}, reason=ledger_unavailable, error={e}]")
                return OperationResult.recoverable(e, "ledger_unavailable")
            if transaction_id in processed:
                logger.debug(f"ATTRIBUTION_DUPLICATE [transaction_id={transaction_id}]")
                return OperationResult.ok(reason="already_processed")

            self.context.active_subscription_product_id = product_id

            report_error: Optional[ApposaurError] = None
            try:
                await api.request(
                    "/referral/purchase",
                    "POST",
                    {
                        "app_user_id": app_user_id,
                        "product_id": product_id,
                        "transaction_id": transaction_id,
                    },
                )
            except ApposaurError as e:
                report_error = e
                logger.error(
                    f"ATTRIBUTION_REPORT_FAILED [transaction_id={transaction_id}, product_id={product_id}, error={e}]",
                    extra={"component": "purchases", "operation": "attribute_purchase", "outcome": "failed"},
                )
                if not self.record_failed_reports:
                    return OperationResult.recoverable(e, "report_failed")

            try:
                await self._record_processed(transaction_id)
            except StorageError as e:
                logger.error(f"ATTRIBUTION_RECORD_FAILED [transaction_id={transaction_id}, error={e}]")
                return OperationResult.recoverable(report_error or e, "ledger_write_failed")

        if report_error is not None:
            return OperationResult.recoverable(report_error, "report_failed")

        logger.info(
            f"PURCHASE_ATTRIBUTED [transaction_id={transaction_id}, product_id={product_id}]",
            extra={"component": "purchases", "operation": "attribute_purchase", "outcome": "success"},
        )
        return OperationResult.ok(transaction_id)

    async def _record_processed(self, transaction_id: str) -> None:
        async with self._ledger_lock:
            processed = await self.repository.get_processed_transactions()
            if transaction_id in processed:
                return
            processed.append(transaction_id)
            await self.repository.save_processed_transactions(processed)

    async def discover_active_subscription_product_id(self) -> str:
        """
        Ask the platform which subscription the user owns.

        Returns:
            Product id of the first available purchase ("" if it has none)

        Raises:
            NoPurchasesFound: The platform returned no purchases
        """
        purchases = await self.context.platform.get_available_purchases()
        if not purchases:
            raise NoPurchasesFound("No purchases found")
        return purchases[0].product_id or ""

    async def refresh_active_subscription(self) -> OperationResult:
        """Best-effort discovery; any failure leaves the cached product unchanged."""
        try:
            product_id = await self.discover_active_subscription_product_id()
        except NoPurchasesFound as e:
            logger.info("ACTIVE_SUBSCRIPTION_NOT_FOUND")
            return OperationResult.recoverable(e, "no_purchases")
        except Exception as e:
            logger.warning(f"ACTIVE_SUBSCRIPTION_DISCOVERY_FAILED [error={type(e).__name__}: {str(e)[:100]}]")
            return OperationResult.recoverable(e, "discovery_failed")

        self.context.active_subscription_product_id = product_id
        logger.info(f"ACTIVE_SUBSCRIPTION_FOUND [product_id={product_id}]")
        return OperationResult.ok(product_id)
