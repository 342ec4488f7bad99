"""
Asynchronous notification ingestion.

Gateway notifications carry no billing identifiers: each item is matched to
a persisted row by its PSP reference, or to a stored hosted-page request by
its merchant reference, then recorded through the engine's record-only path.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from application.dtos.transactions import NotificationItem
from application.ports.notification_decoder import NotificationDecoder
from application.services.transaction_service import TransactionService
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.transaction.entity import (
    HppRequestRecord,
    PaymentPluginStatus,
    ResponseRecord,
    TransactionAttempt,
    TransactionType,
)
from domain.transaction.gateway_response import PspResult
from domain.transaction.properties import (
    PROPERTY_AUTH_MODE,
    PROPERTY_EVENT_CODE,
    PROPERTY_FROM_HPP,
    PROPERTY_FROM_HPP_TRANSACTION_STATUS,
    PROPERTY_MERCHANT_REFERENCE,
    PROPERTY_ORIGINAL_REFERENCE,
    PROPERTY_PSP_REFERENCE,
    PROPERTY_PSP_RESULT,
    PROPERTY_REASON,
    PROPERTY_SUCCESS,
    find_value,
    is_true,
)


logger = get_logger(__name__)

NOTIFICATION_ACCEPTED = "[accepted]"

EVENT_AUTHORISATION = "AUTHORISATION"

EVENT_CODE_TO_TRANSACTION_TYPE = {
    EVENT_AUTHORISATION: TransactionType.AUTHORIZE,
    "CAPTURE": TransactionType.CAPTURE,
    "CANCELLATION": TransactionType.VOID,
    "REFUND": TransactionType.REFUND,
    "CANCEL_OR_REFUND": TransactionType.REFUND,
    "REFUND_WITH_DATA": TransactionType.CREDIT,
}


class NotificationService:
    def __init__(
        self,
        decoder: NotificationDecoder,
        transaction_service: TransactionService,
        uow_factory: Callable[..., AbstractUnitOfWork],
    ) -> None:
        self._decoder = decoder
        self._transactions = transaction_service
        self._uow_factory = uow_factory

    async def process_notification(self, notification: str) -> str:
        items = self._decoder.decode(notification)
        logger.info("notification_received", items=len(items))
        for item in items:
            await self._handle_item(item)
        return NOTIFICATION_ACCEPTED

    async def _handle_item(self, item: NotificationItem) -> None:
        if item.event_code not in EVENT_CODE_TO_TRANSACTION_TYPE:
            logger.info("notification_event_ignored", event_code=item.event_code, psp_reference=item.psp_reference)
            return

        record, hpp_request = await self._resolve(item)
        attempt = self._to_attempt(item, record, hpp_request)
        if attempt is None:
            return
        if await self._already_recorded(item, attempt):
            logger.info(
                "notification_duplicate",
                event_code=item.event_code,
                psp_reference=item.psp_reference,
                kb_transaction_id=attempt.kb_transaction_id,
            )
            return

        info = await self._transactions.process_attempt(attempt)
        logger.info(
            "notification_recorded",
            event_code=item.event_code,
            kb_payment_id=info.kb_payment_id,
            kb_transaction_id=info.kb_transaction_id,
            status=info.status.value,
        )

    async def _resolve(
        self,
        item: NotificationItem,
    ) -> tuple[Optional[ResponseRecord], Optional[HppRequestRecord]]:
        async with self._uow_factory(readonly=True) as uow:
            if item.psp_reference:
                record = await uow.response_repository.get_response(item.psp_reference)
                if record is not None:
                    return record, None
            if item.merchant_reference:
                hpp_request = await uow.hpp_request_repository.get_by_transaction_external_key(
                    item.merchant_reference
                )
                if hpp_request is not None:
                    return None, hpp_request
        return None, None

    async def _already_recorded(self, item: NotificationItem, attempt: TransactionAttempt) -> bool:
        """Redelivered batches must not record an item twice"""
        async with self._uow_factory(readonly=True) as uow:
            latest = await uow.response_repository.get_transaction_response(
                attempt.kb_transaction_id, attempt.transaction_type
            )
        if latest is None:
            return False
        recorded = latest.additional_data or {}
        return (
            recorded.get(PROPERTY_EVENT_CODE) == item.event_code
            and recorded.get(PROPERTY_PSP_REFERENCE) == item.psp_reference
            and recorded.get(PROPERTY_SUCCESS) == ("true" if item.success else "false")
        )

    def _to_attempt(
        self,
        item: NotificationItem,
        record: Optional[ResponseRecord],
        hpp_request: Optional[HppRequestRecord],
    ) -> Optional[TransactionAttempt]:
        if record is not None:
            kb_account_id, kb_payment_id, kb_transaction_id = (
                record.kb_account_id,
                record.kb_payment_id,
                record.kb_transaction_id,
            )
        elif hpp_request is not None and hpp_request.kb_payment_id and hpp_request.kb_transaction_id:
            kb_account_id, kb_payment_id, kb_transaction_id = (
                hpp_request.kb_account_id,
                hpp_request.kb_payment_id,
                hpp_request.kb_transaction_id,
            )
        else:
            logger.warning(
                "notification_unmatched",
                event_code=item.event_code,
                psp_reference=item.psp_reference,
                merchant_reference=item.merchant_reference,
            )
            return None

        transaction_type = self._transaction_type(item.event_code, record, hpp_request)
        amount = item.amount if item.amount is not None else (record.amount if record else None)
        currency = item.currency or (record.currency if record else None)
        try:
            return TransactionAttempt(
                kb_account_id=kb_account_id,
                kb_payment_id=kb_payment_id,
                kb_transaction_id=kb_transaction_id,
                kb_payment_method_id=None,
                transaction_type=transaction_type,
                amount=amount,
                currency=currency,
                properties=self._to_properties(item),
            )
        except DomainValidationException as exc:
            logger.warning(
                "notification_invalid",
                event_code=item.event_code,
                psp_reference=item.psp_reference,
                error=exc.message,
            )
            return None

    @staticmethod
    def _transaction_type(
        event_code: str,
        record: Optional[ResponseRecord],
        hpp_request: Optional[HppRequestRecord],
    ) -> TransactionType:
        transaction_type = EVENT_CODE_TO_TRANSACTION_TYPE[event_code]
        if event_code != EVENT_AUTHORISATION:
            return transaction_type
        if record is not None and record.transaction_type in (TransactionType.AUTHORIZE, TransactionType.PURCHASE):
            return record.transaction_type
        if hpp_request is not None and not is_true(find_value(hpp_request.additional_data, PROPERTY_AUTH_MODE)):
            return TransactionType.PURCHASE
        return transaction_type

    @staticmethod
    def _to_properties(item: NotificationItem) -> dict[str, Any]:
        if not item.success:
            psp_result = PspResult.REFUSED
        elif item.event_code == EVENT_AUTHORISATION:
            psp_result = PspResult.AUTHORISED
        else:
            psp_result = PspResult.RECEIVED
        status = PaymentPluginStatus.PROCESSED if item.success else PaymentPluginStatus.ERROR

        properties: dict[str, Any] = dict(item.additional_data)
        properties.update(
            {
                PROPERTY_FROM_HPP: "true",
                PROPERTY_FROM_HPP_TRANSACTION_STATUS: status.value,
                PROPERTY_PSP_RESULT: psp_result.code,
                PROPERTY_EVENT_CODE: item.event_code,
                PROPERTY_SUCCESS: "true" if item.success else "false",
            }
        )
        optional = {
            PROPERTY_REASON: item.reason,
            PROPERTY_PSP_REFERENCE: item.psp_reference,
            PROPERTY_MERCHANT_REFERENCE: item.merchant_reference,
            PROPERTY_ORIGINAL_REFERENCE: item.original_reference,
        }
        properties.update({key: value for key, value in optional.items() if value is not None})
        return properties
