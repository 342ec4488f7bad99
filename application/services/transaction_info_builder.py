"""
Build the normalized PluginTransactionInfo handed back to the billing platform.

Two paths exist: ``from_response`` for a result just received from the
gateway, and ``from_record`` for a persisted row. Rows are written with
``ResponseRecord.from_response``, so both paths derive the same status, error
code and error message for the same gateway answer.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from domain.transaction.entity import (
    PaymentPluginStatus,
    PluginTransactionInfo,
    ResponseRecord,
    TransactionAttempt,
)
from domain.transaction.error_descriptor import error_code, error_message, gateway_error, gateway_error_code
from domain.transaction.gateway_response import (
    GatewayResponse,
    ModificationResult,
    NotificationPayload,
    PurchaseResult,
)
from domain.transaction.properties import (
    PROPERTY_AUTH_CODE,
    PROPERTY_FROM_HPP_TRANSACTION_STATUS,
    PROPERTY_PSP_REFERENCE,
    find_value,
)
from domain.transaction.status import status_from_persisted, status_of


def _override_status(properties: Optional[Mapping[str, Any]]) -> Optional[PaymentPluginStatus]:
    # Pending hosted-page payments are fabricated before any gateway call and
    # carry their status explicitly.
    raw = find_value(properties, PROPERTY_FROM_HPP_TRANSACTION_STATUS)
    if raw is None:
        return None
    return PaymentPluginStatus(raw.strip().upper())


class TransactionInfoBuilder:
    """Turns gateway answers and persisted rows into PluginTransactionInfo."""

    def from_response(
        self,
        attempt: TransactionAttempt,
        response: GatewayResponse,
        now: datetime,
    ) -> PluginTransactionInfo:
        if isinstance(response, PurchaseResult):
            properties = dict(response.form_parameters)
            # same bag the row keeps as additional data
            status_source = {**response.form_parameters, **response.additional_data}
            psp_reference, auth_code = response.psp_reference, response.auth_code
        elif isinstance(response, ModificationResult):
            properties = dict(response.additional_data)
            status_source = properties
            psp_reference, auth_code = response.psp_reference, None
        elif isinstance(response, NotificationPayload):
            properties = dict(response.properties)
            status_source = properties
            psp_reference = response.get(PROPERTY_PSP_REFERENCE)
            auth_code = response.get(PROPERTY_AUTH_CODE)
        else:
            raise TypeError(f"Unsupported gateway response: {type(response).__name__}")

        status = _override_status(status_source) or status_of(response)
        return PluginTransactionInfo(
            kb_payment_id=attempt.kb_payment_id,
            kb_transaction_id=attempt.kb_transaction_id,
            transaction_type=attempt.transaction_type,
            amount=attempt.amount,
            currency=attempt.currency,
            status=status,
            gateway_error=gateway_error(response),
            gateway_error_code=gateway_error_code(response),
            psp_reference=psp_reference,
            auth_code=auth_code,
            created_at=now,
            effective_at=now,
            properties=properties,
        )

    def from_record(self, record: ResponseRecord) -> PluginTransactionInfo:
        additional_data = dict(record.additional_data or {})
        status = _override_status(additional_data) or status_from_persisted(record.psp_result, additional_data)
        return PluginTransactionInfo(
            kb_payment_id=record.kb_payment_id,
            kb_transaction_id=record.kb_transaction_id,
            transaction_type=record.transaction_type,
            amount=record.amount,
            currency=record.currency,
            status=status,
            gateway_error=error_message(record.refusal_reason, additional_data),
            gateway_error_code=error_code(record.result_code, additional_data, record.psp_result),
            psp_reference=record.psp_reference,
            auth_code=record.auth_code,
            created_at=record.created_at,
            effective_at=record.created_at,
            properties=additional_data,
        )
