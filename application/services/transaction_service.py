"""
Application service orchestrating gateway transactions for the billing platform.

Every operation is a strictly sequential chain: read prior state, call the
gateway at most once, persist exactly one row, return the normalized
PluginTransactionInfo. The service depends only on ports (gateway client,
billing platform, hosted payment page, unit of work); concrete adapters are
injected from the composition root.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Optional, TypeVar

from structlog.contextvars import bound_contextvars

from application.dtos.transactions import Account, FormDescriptor, PaymentData
from application.ports.billing_platform import BillingPlatform
from application.ports.gateway_client import GatewayClient
from application.ports.hosted_payment_page import HostedPaymentPage
from application.services.payment_data_mapping import (
    hpp_transaction_external_key,
    payment_method_properties,
    to_payment_data,
    to_payment_info,
    to_split_settlement_data,
    to_user_data,
)
from application.services.transaction_info_builder import TransactionInfoBuilder
from core.logging_config import get_logger
from core.settings import GatewaySettings, gateway_settings
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    GatewayCallFailedException,
    HostedPaymentPageException,
    MissingPriorResponseException,
    RecordStoreException,
    ResultNotRecordedException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.transaction.entity import (
    HppRequestRecord,
    PaymentMethodRecord,
    PaymentPluginStatus,
    PluginTransactionInfo,
    ResponseRecord,
    TransactionAttempt,
    TransactionType,
)
from domain.transaction.gateway_response import GatewayResponse, PspResult
from domain.transaction.properties import (
    PROPERTY_AMOUNT,
    PROPERTY_AUTH_MODE,
    PROPERTY_CAPTURE_DELAY_HOURS,
    PROPERTY_CREATE_PENDING_PAYMENT,
    PROPERTY_CURRENCY,
    PROPERTY_FROM_HPP,
    PROPERTY_FROM_HPP_TRANSACTION_STATUS,
    PROPERTY_HPP_TARGET,
    find_value,
    is_true,
    merge,
)
from domain.transaction.routing import CallMode, RoutingInput, is_secure_continuation, route
from domain.transaction.status import status_of


logger = get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _awaits_secure_continuation(mode: CallMode, existing: ResponseRecord) -> bool:
    """Only a shopper redirected to 3-D Secure may add a second row for the same transaction."""
    return mode == CallMode.SECURE_CONTINUATION and existing.psp_result == PspResult.REDIRECT_SHOPPER.code


class TransactionService:
    """Orchestration engine: routes billing transactions to gateway calls and records the outcome."""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway_client: GatewayClient,
        billing_platform: BillingPlatform,
        *,
        hosted_payment_page: Optional[HostedPaymentPage] = None,
        settings: Optional[GatewaySettings] = None,
        builder: Optional[TransactionInfoBuilder] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway_client
        self._billing = billing_platform
        self._hpp = hosted_payment_page
        self._settings = settings or gateway_settings
        self._builder = builder or TransactionInfoBuilder()
        self._clock = clock

    # ------------------------------------------------------------------
    # Initial transactions
    # ------------------------------------------------------------------

    async def authorize_payment(
        self,
        kb_account_id: str,
        kb_payment_id: str,
        kb_transaction_id: str,
        kb_payment_method_id: Optional[str],
        amount: Decimal,
        currency: str,
        properties: Optional[dict[str, Any]] = None,
    ) -> PluginTransactionInfo:
        attempt = TransactionAttempt(
            kb_account_id=kb_account_id,
            kb_payment_id=kb_payment_id,
            kb_transaction_id=kb_transaction_id,
            kb_payment_method_id=kb_payment_method_id,
            transaction_type=TransactionType.AUTHORIZE,
            amount=amount,
            currency=currency,
            properties=dict(properties or {}),
        )
        return await self.process_attempt(attempt)

    async def purchase_payment(
        self,
        kb_account_id: str,
        kb_payment_id: str,
        kb_transaction_id: str,
        kb_payment_method_id: Optional[str],
        amount: Decimal,
        currency: str,
        properties: Optional[dict[str, Any]] = None,
    ) -> PluginTransactionInfo:
        properties = dict(properties or {})
        # Validate before touching the record store
        TransactionAttempt(
            kb_account_id=kb_account_id,
            kb_payment_id=kb_payment_id,
            kb_transaction_id=kb_transaction_id,
            kb_payment_method_id=kb_payment_method_id,
            transaction_type=TransactionType.PURCHASE,
            amount=amount,
            currency=currency,
        )

        # Shopper redirected back from the hosted page: the row already exists
        record = await self._write(
            "update_response",
            lambda uow: uow.response_repository.update_response(kb_transaction_id, properties),
        )
        if record is not None:
            logger.info(
                "purchase_resumed",
                kb_payment_id=kb_payment_id,
                kb_transaction_id=kb_transaction_id,
                psp_reference=record.psp_reference,
            )
            return self._builder.from_record(record)

        # Auto-capture unless told otherwise
        properties.setdefault(PROPERTY_CAPTURE_DELAY_HOURS, "0")
        attempt = TransactionAttempt(
            kb_account_id=kb_account_id,
            kb_payment_id=kb_payment_id,
            kb_transaction_id=kb_transaction_id,
            kb_payment_method_id=kb_payment_method_id,
            transaction_type=TransactionType.PURCHASE,
            amount=amount,
            currency=currency,
            properties=properties,
        )
        return await self.process_attempt(attempt)

    async def credit_payment(
        self,
        kb_account_id: str,
        kb_payment_id: str,
        kb_transaction_id: str,
        kb_payment_method_id: Optional[str],
        amount: Decimal,
        currency: str,
        properties: Optional[dict[str, Any]] = None,
    ) -> PluginTransactionInfo:
        attempt = TransactionAttempt(
            kb_account_id=kb_account_id,
            kb_payment_id=kb_payment_id,
            kb_transaction_id=kb_transaction_id,
            kb_payment_method_id=kb_payment_method_id,
            transaction_type=TransactionType.CREDIT,
            amount=amount,
            currency=currency,
            properties=dict(properties or {}),
        )
        return await self.process_attempt(attempt)

    # ------------------------------------------------------------------
    # Follow-up transactions
    # ------------------------------------------------------------------

    async def capture_payment(
        self,
        kb_account_id: str,
        kb_payment_id: str,
        kb_transaction_id: str,
        kb_payment_method_id: Optional[str],
        amount: Decimal,
        currency: str,
        properties: Optional[dict[str, Any]] = None,
    ) -> PluginTransactionInfo:
        attempt = TransactionAttempt(
            kb_account_id=kb_account_id,
            kb_payment_id=kb_payment_id,
            kb_transaction_id=kb_transaction_id,
            kb_payment_method_id=kb_payment_method_id,
            transaction_type=TransactionType.CAPTURE,
            amount=amount,
            currency=currency,
            properties=dict(properties or {}),
        )
        return await self.process_attempt(attempt)

    async def void_payment(
        self,
        kb_account_id: str,
        kb_payment_id: str,
        kb_transaction_id: str,
        kb_payment_method_id: Optional[str],
        properties: Optional[dict[str, Any]] = None,
    ) -> PluginTransactionInfo:
        attempt = TransactionAttempt(
            kb_account_id=kb_account_id,
            kb_payment_id=kb_payment_id,
            kb_transaction_id=kb_transaction_id,
            kb_payment_method_id=kb_payment_method_id,
            transaction_type=TransactionType.VOID,
            properties=dict(properties or {}),
        )
        return await self.process_attempt(attempt)

    async def refund_payment(
        self,
        kb_account_id: str,
        kb_payment_id: str,
        kb_transaction_id: str,
        kb_payment_method_id: Optional[str],
        amount: Decimal,
        currency: str,
        properties: Optional[dict[str, Any]] = None,
    ) -> PluginTransactionInfo:
        attempt = TransactionAttempt(
            kb_account_id=kb_account_id,
            kb_payment_id=kb_payment_id,
            kb_transaction_id=kb_transaction_id,
            kb_payment_method_id=kb_payment_method_id,
            transaction_type=TransactionType.REFUND,
            amount=amount,
            currency=currency,
            properties=dict(properties or {}),
        )
        return await self.process_attempt(attempt)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_payment_info(self, kb_payment_id: str) -> list[PluginTransactionInfo]:
        records = await self._read(
            "get_responses",
            lambda uow: uow.response_repository.get_responses(kb_payment_id),
        )
        return [self._builder.from_record(record) for record in records]

    # ------------------------------------------------------------------
    # Hosted payment page
    # ------------------------------------------------------------------

    async def build_form_descriptor(
        self,
        kb_account_id: str,
        custom_fields: Optional[dict[str, Any]] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> FormDescriptor:
        if self._hpp is None:
            raise HostedPaymentPageException("No hosted payment page configured")

        merged = merge(custom_fields, properties)
        amount = self._parse_amount(find_value(merged, PROPERTY_AMOUNT))
        account = await self._billing.get_account(kb_account_id)
        currency = find_value(merged, PROPERTY_CURRENCY, account.currency)
        if not currency:
            raise DomainValidationException("currency must be specified", field=PROPERTY_CURRENCY)

        now = self._clock()
        transaction_external_key = hpp_transaction_external_key(merged)
        payment_info = to_payment_info(account, None, merged)
        if payment_info.skin_code is None:
            payment_info.skin_code = self._settings.get_skin(payment_info.country)
        if payment_info.session_validity is None:
            validity = now + timedelta(minutes=self._settings.session_validity_minutes)
            payment_info.session_validity = validity.isoformat()
        payment_data = to_payment_data(amount, currency, transaction_external_key, payment_info)
        user_data = to_user_data(account, merged)

        kb_payment_id: Optional[str] = None
        kb_transaction_id: Optional[str] = None
        if is_true(find_value(merged, PROPERTY_CREATE_PENDING_PAYMENT)):
            auth_mode = is_true(find_value(merged, PROPERTY_AUTH_MODE))
            pending = await self._billing.create_pending_payment(
                auth_mode=auth_mode,
                account=account,
                amount=amount,
                currency=payment_data.currency,
                transaction_external_key=transaction_external_key,
                properties={
                    PROPERTY_FROM_HPP: "true",
                    PROPERTY_FROM_HPP_TRANSACTION_STATUS: PaymentPluginStatus.PENDING.value,
                },
            )
            kb_payment_id, kb_transaction_id = pending.kb_payment_id, pending.kb_transaction_id
            logger.info(
                "hpp_pending_payment_created",
                kb_account_id=kb_account_id,
                kb_payment_id=kb_payment_id,
                auth_mode=auth_mode,
            )

        hpp_request = HppRequestRecord(
            id=None,
            kb_account_id=kb_account_id,
            kb_payment_id=kb_payment_id,
            kb_transaction_id=kb_transaction_id,
            transaction_external_key=transaction_external_key,
            additional_data=merged,
            created_at=now,
        )
        await self._write(
            "add_hpp_request",
            lambda uow: uow.hpp_request_repository.add_hpp_request(hpp_request),
        )

        merchant_account = self._settings.get_merchant_account(payment_info.country, merged)
        try:
            form_fields = self._hpp.get_form_parameter(
                merchant_account,
                payment_data,
                user_data,
                to_split_settlement_data(merged),
            )
        except BusinessException:
            raise
        except Exception as exc:
            logger.error("hpp_form_failed", kb_account_id=kb_account_id, error=str(exc))
            raise HostedPaymentPageException(
                f"Unable to build hosted payment page form: {exc}",
                details={"transaction_external_key": transaction_external_key},
            ) from exc

        form_url = find_value(merged, PROPERTY_HPP_TARGET) or self._hpp.hpp_target
        logger.info(
            "hpp_form_built",
            kb_account_id=kb_account_id,
            transaction_external_key=transaction_external_key,
            merchant_account=merchant_account,
        )
        return FormDescriptor(kb_account_id=kb_account_id, form_url=form_url, form_fields=form_fields)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def process_attempt(self, attempt: TransactionAttempt) -> PluginTransactionInfo:
        """Route a validated attempt and carry it through to a recorded result."""
        with bound_contextvars(
            kb_payment_id=attempt.kb_payment_id,
            kb_transaction_id=attempt.kb_transaction_id,
            transaction_type=attempt.transaction_type.value,
        ):
            from_hpp = is_true(find_value(attempt.properties, PROPERTY_FROM_HPP))
            prior: Optional[ResponseRecord] = None
            if not from_hpp:
                prior = await self._read(
                    "get_successful_authorization_response",
                    lambda uow: uow.response_repository.get_successful_authorization_response(
                        attempt.kb_payment_id
                    ),
                )
            mode = route(
                RoutingInput(
                    transaction_type=attempt.transaction_type,
                    from_hpp=from_hpp,
                    secure_continuation=is_secure_continuation(prior, attempt.kb_transaction_id),
                )
            )
            logger.info("transaction_routed", mode=mode.value)

            if mode == CallMode.RECORD_ONLY:
                return await self._record_only(attempt)
            existing = await self._read(
                "get_transaction_response",
                lambda uow: uow.response_repository.get_transaction_response(
                    attempt.kb_transaction_id, attempt.transaction_type
                ),
            )
            if existing is not None and not _awaits_secure_continuation(mode, existing):
                # retried billing call: no second gateway call, no second row
                logger.info("transaction_replayed", psp_reference=existing.psp_reference)
                return self._builder.from_record(existing)
            if mode == CallMode.MODIFICATION_CALL:
                return await self._execute_follow_up(attempt, prior)
            return await self._execute_initial(attempt, mode)

    async def _execute_initial(self, attempt: TransactionAttempt, mode: CallMode) -> PluginTransactionInfo:
        account = await self._billing.get_account(attempt.kb_account_id)
        payment_method = await self._load_payment_method(attempt)
        properties = merge(payment_method_properties(payment_method), attempt.properties)

        payment_data = await self._build_payment_data(attempt, account, payment_method, properties)
        user_data = to_user_data(account, properties)
        merchant_account = self._settings.get_merchant_account(payment_data.payment_info.country, properties)
        split_settlement_data = to_split_settlement_data(properties)

        if mode == CallMode.SECURE_CONTINUATION:
            operation, call = "authorize_3d_secure", self._gateway.authorize_3d_secure
        elif mode == CallMode.CREDIT_CALL:
            operation, call = "credit", self._gateway.credit
        else:
            operation, call = "authorize", self._gateway.authorize

        response = await self._call_gateway(
            operation,
            merchant_account,
            lambda: call(merchant_account, payment_data, user_data, split_settlement_data),
        )
        return await self._record_response(attempt, response)

    async def _execute_follow_up(
        self,
        attempt: TransactionAttempt,
        prior: Optional[ResponseRecord],
    ) -> PluginTransactionInfo:
        if prior is None or not prior.psp_reference:
            logger.warning("missing_prior_response")
            raise MissingPriorResponseException(attempt.kb_payment_id, attempt.kb_transaction_id)

        account = await self._billing.get_account(attempt.kb_account_id)
        payment_method = await self._load_payment_method(attempt)
        payment_data = await self._build_payment_data(attempt, account, payment_method, attempt.properties)
        merchant_account = self._settings.get_merchant_account(
            payment_data.payment_info.country, attempt.properties
        )
        split_settlement_data = to_split_settlement_data(attempt.properties)

        if attempt.transaction_type == TransactionType.CAPTURE:
            operation, call = "capture", self._gateway.capture
        elif attempt.transaction_type == TransactionType.VOID:
            operation, call = "cancel", self._gateway.cancel
        else:
            operation, call = "refund", self._gateway.refund

        psp_reference = prior.psp_reference
        response = await self._call_gateway(
            operation,
            merchant_account,
            lambda: call(merchant_account, payment_data, psp_reference, split_settlement_data),
        )
        return await self._record_response(attempt, response)

    async def _record_only(self, attempt: TransactionAttempt) -> PluginTransactionInfo:
        now = self._clock()
        record = await self._write(
            "add_notification_record",
            lambda uow: uow.response_repository.add_notification_record(attempt, attempt.properties, now),
        )
        logger.info("transaction_recorded", psp_reference=record.psp_reference)
        return self._builder.from_record(record)

    async def _record_response(self, attempt: TransactionAttempt, response: GatewayResponse) -> PluginTransactionInfo:
        now = self._clock()
        status = status_of(response)
        try:
            async with self._uow_factory() as uow:
                await uow.response_repository.add_response(attempt, response, now)
        except Exception as exc:
            psp_reference = getattr(response, "psp_reference", None)
            logger.error(
                "result_not_recorded",
                psp_reference=psp_reference,
                status=status.value,
                error=str(exc),
            )
            raise ResultNotRecordedException(
                f"Gateway processed the transaction but the result could not be recorded: {exc}",
                psp_reference=psp_reference,
                status=status.value,
                details={
                    "kb_payment_id": attempt.kb_payment_id,
                    "kb_transaction_id": attempt.kb_transaction_id,
                },
            ) from exc

        info = self._builder.from_response(attempt, response, now)
        logger.info(
            "transaction_completed",
            status=info.status.value,
            psp_reference=info.psp_reference,
            gateway_error_code=info.gateway_error_code,
        )
        return info

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_payment_method(self, attempt: TransactionAttempt) -> PaymentMethodRecord:
        if not attempt.kb_payment_method_id:
            return PaymentMethodRecord.empty(None)
        payment_method = await self._read(
            "get_payment_method",
            lambda uow: uow.payment_method_repository.get_payment_method(attempt.kb_payment_method_id),
        )
        if payment_method is None:
            # All payment data is then expected in the call properties
            logger.info("payment_method_not_found", kb_payment_method_id=attempt.kb_payment_method_id)
            return PaymentMethodRecord.empty(attempt.kb_payment_method_id)
        return payment_method

    async def _build_payment_data(
        self,
        attempt: TransactionAttempt,
        account: Account,
        payment_method: Optional[PaymentMethodRecord],
        properties: dict[str, Any],
    ) -> PaymentData:
        transaction_external_key = await self._billing.get_transaction_external_key(
            attempt.kb_payment_id, attempt.kb_transaction_id
        )
        payment_info = to_payment_info(account, payment_method, properties)
        return to_payment_data(attempt.amount, attempt.currency, transaction_external_key, payment_info)

    async def _call_gateway(
        self,
        operation: str,
        merchant_account: str,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        logger.info("gateway_call", operation=operation, merchant_account=merchant_account)
        try:
            return await call()
        except Exception as exc:
            logger.error("gateway_call_failed", operation=operation, error=str(exc), exc_info=True)
            raise GatewayCallFailedException(
                operation,
                f"Gateway call {operation} failed: {exc}",
                details={"merchant_account": merchant_account},
            ) from exc

    async def _read(self, operation: str, fn: Callable[[AbstractUnitOfWork], Awaitable[T]]) -> T:
        try:
            async with self._uow_factory(readonly=True) as uow:
                return await fn(uow)
        except BusinessException:
            raise
        except Exception as exc:
            logger.error("record_store_read_failed", operation=operation, error=str(exc))
            raise RecordStoreException(
                f"Record store {operation} failed: {exc}",
                details={"operation": operation},
            ) from exc

    async def _write(self, operation: str, fn: Callable[[AbstractUnitOfWork], Awaitable[T]]) -> T:
        try:
            async with self._uow_factory() as uow:
                return await fn(uow)
        except BusinessException:
            raise
        except Exception as exc:
            logger.error("record_store_write_failed", operation=operation, error=str(exc))
            raise RecordStoreException(
                f"Record store {operation} failed: {exc}",
                details={"operation": operation},
            ) from exc

    @staticmethod
    def _parse_amount(raw: Optional[str]) -> Decimal:
        if raw is None or raw.strip() == "":
            raise DomainValidationException("amount must be specified", field=PROPERTY_AMOUNT)
        try:
            amount = Decimal(raw)
        except InvalidOperation as exc:
            raise DomainValidationException(f"Invalid amount: {raw!r}", field=PROPERTY_AMOUNT) from exc
        if amount < 0:
            raise DomainValidationException(f"Invalid amount: {raw!r}", field=PROPERTY_AMOUNT)
        return amount
