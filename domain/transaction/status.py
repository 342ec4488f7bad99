"""
Status taxonomy: collapse gateway outcomes into a PaymentPluginStatus.

A gateway outcome is either a technical call error (the request never
produced a business answer) or a business PSP result. Exactly one of them is
present; receiving both or neither means a collaborator broke its contract.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.transaction.entity import PaymentPluginStatus
from domain.transaction.gateway_response import (
    ADYEN_CALL_ERROR_STATUS,
    CallErrorStatus,
    GatewayResponse,
    ModificationResult,
    NotificationPayload,
    PspResult,
    PurchaseResult,
)
from domain.transaction.properties import PROPERTY_PSP_RESULT


_CALL_ERROR_STATUS_TO_PLUGIN_STATUS = {
    CallErrorStatus.REQUEST_NOT_SEND: PaymentPluginStatus.CANCELED,
    CallErrorStatus.RESPONSE_ABOUT_INVALID_REQUEST: PaymentPluginStatus.CANCELED,
    CallErrorStatus.RESPONSE_NOT_RECEIVED: PaymentPluginStatus.UNDEFINED,
    CallErrorStatus.RESPONSE_INVALID: PaymentPluginStatus.UNDEFINED,
    CallErrorStatus.UNKNOWN_FAILURE: PaymentPluginStatus.UNDEFINED,
}

_PSP_RESULT_TO_PLUGIN_STATUS = {
    PspResult.INITIALISED: PaymentPluginStatus.PENDING,
    PspResult.REDIRECT_SHOPPER: PaymentPluginStatus.PENDING,
    PspResult.RECEIVED: PaymentPluginStatus.PENDING,
    PspResult.PENDING: PaymentPluginStatus.PENDING,
    PspResult.AUTHORISED: PaymentPluginStatus.PROCESSED,
    PspResult.REFUSED: PaymentPluginStatus.ERROR,
    PspResult.ERROR: PaymentPluginStatus.ERROR,
    PspResult.CANCELLED: PaymentPluginStatus.ERROR,
}


def call_error_status_to_plugin_status(call_error_status: CallErrorStatus) -> PaymentPluginStatus:
    return _CALL_ERROR_STATUS_TO_PLUGIN_STATUS.get(call_error_status, PaymentPluginStatus.UNDEFINED)


def psp_result_to_plugin_status(psp_result: Optional[PspResult]) -> PaymentPluginStatus:
    return _PSP_RESULT_TO_PLUGIN_STATUS.get(psp_result, PaymentPluginStatus.UNDEFINED)


def to_plugin_status(
    call_error_status: Optional[CallErrorStatus],
    psp_result: Optional[PspResult],
) -> PaymentPluginStatus:
    """Map a (technical status, business result) pair; exactly one must be set."""
    if (call_error_status is None) == (psp_result is None):
        raise ValueError(
            "Exactly one of call_error_status and psp_result must be present, "
            f"got call_error_status={call_error_status!r}, psp_result={psp_result!r}"
        )
    if psp_result is not None:
        return psp_result_to_plugin_status(psp_result)
    return call_error_status_to_plugin_status(call_error_status)


def modification_psp_result(response: ModificationResult) -> Optional[PspResult]:
    # Modifications are confirmed asynchronously: an accepted request only
    # means "received", never "processed".
    return PspResult.RECEIVED if response.technically_successful else None


def status_from_persisted(psp_result: Optional[str], additional_data: Optional[Mapping[str, Any]]) -> PaymentPluginStatus:
    """Derive the status from persisted columns (also used for notification properties)."""
    if not psp_result:
        raw = (additional_data or {}).get(ADYEN_CALL_ERROR_STATUS)
        call_error_status = CallErrorStatus(str(raw)) if raw else CallErrorStatus.UNKNOWN_FAILURE
        return call_error_status_to_plugin_status(call_error_status)
    return psp_result_to_plugin_status(PspResult.from_code(psp_result))


def status_of(response: GatewayResponse) -> PaymentPluginStatus:
    """Classify any gateway response variant."""
    if isinstance(response, PurchaseResult):
        return to_plugin_status(response.call_error_status, response.result)
    if isinstance(response, ModificationResult):
        psp_result = modification_psp_result(response)
        if psp_result is None:
            return status_from_persisted(None, response.additional_data)
        return to_plugin_status(None, psp_result)
    if isinstance(response, NotificationPayload):
        return status_from_persisted(response.get(PROPERTY_PSP_RESULT), response.properties)
    raise TypeError(f"Unsupported gateway response: {type(response).__name__}")
