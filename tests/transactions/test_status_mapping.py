import pytest

from domain.transaction.entity import PaymentPluginStatus
from domain.transaction.gateway_response import (
    CallErrorStatus,
    ModificationResult,
    NotificationPayload,
    PspResult,
    PurchaseResult,
)
from domain.transaction.status import status_from_persisted, status_of, to_plugin_status


@pytest.mark.parametrize(
    "call_error_status, expected",
    [
        (CallErrorStatus.REQUEST_NOT_SEND, PaymentPluginStatus.CANCELED),
        (CallErrorStatus.RESPONSE_ABOUT_INVALID_REQUEST, PaymentPluginStatus.CANCELED),
        (CallErrorStatus.RESPONSE_NOT_RECEIVED, PaymentPluginStatus.UNDEFINED),
        (CallErrorStatus.RESPONSE_INVALID, PaymentPluginStatus.UNDEFINED),
        (CallErrorStatus.UNKNOWN_FAILURE, PaymentPluginStatus.UNDEFINED),
    ],
)
def test_call_error_status_table(call_error_status, expected):
    assert to_plugin_status(call_error_status, None) == expected


@pytest.mark.parametrize(
    "psp_result, expected",
    [
        (PspResult.INITIALISED, PaymentPluginStatus.PENDING),
        (PspResult.REDIRECT_SHOPPER, PaymentPluginStatus.PENDING),
        (PspResult.RECEIVED, PaymentPluginStatus.PENDING),
        (PspResult.PENDING, PaymentPluginStatus.PENDING),
        (PspResult.AUTHORISED, PaymentPluginStatus.PROCESSED),
        (PspResult.REFUSED, PaymentPluginStatus.ERROR),
        (PspResult.ERROR, PaymentPluginStatus.ERROR),
        (PspResult.CANCELLED, PaymentPluginStatus.ERROR),
    ],
)
def test_psp_result_table(psp_result, expected):
    assert to_plugin_status(None, psp_result) == expected


def test_both_or_neither_input_is_a_contract_breach():
    with pytest.raises(ValueError):
        to_plugin_status(CallErrorStatus.UNKNOWN_FAILURE, PspResult.AUTHORISED)
    with pytest.raises(ValueError):
        to_plugin_status(None, None)


def test_psp_result_aliases_resolve_to_same_member():
    assert PspResult.from_code("[capture-received]") is PspResult.RECEIVED
    assert PspResult.from_code("[cancelOrRefund-received]") is PspResult.RECEIVED
    assert PspResult.from_code("[error]") is PspResult.ERROR
    assert PspResult.from_code("NotAThing") is None
    assert PspResult.from_code(None) is None


def test_unknown_persisted_result_is_undefined():
    assert status_from_persisted("NotAThing", {}) == PaymentPluginStatus.UNDEFINED


def test_empty_persisted_result_uses_stored_call_error_status():
    assert status_from_persisted(None, {"adyenCallErrorStatus": "REQUEST_NOT_SEND"}) == PaymentPluginStatus.CANCELED
    assert status_from_persisted("", {}) == PaymentPluginStatus.UNDEFINED


def test_modification_outcomes():
    assert status_of(ModificationResult(technically_successful=True)) == PaymentPluginStatus.PENDING
    assert status_of(ModificationResult(technically_successful=False)) == PaymentPluginStatus.UNDEFINED


def test_status_of_dispatches_every_variant():
    assert status_of(PurchaseResult(result=PspResult.AUTHORISED)) == PaymentPluginStatus.PROCESSED
    assert (
        status_of(PurchaseResult(call_error_status=CallErrorStatus.RESPONSE_ABOUT_INVALID_REQUEST))
        == PaymentPluginStatus.CANCELED
    )
    assert status_of(NotificationPayload({"pspResult": "Refused"})) == PaymentPluginStatus.ERROR


def test_status_of_rejects_unknown_variant():
    with pytest.raises(TypeError):
        status_of({"pspResult": "Authorised"})
