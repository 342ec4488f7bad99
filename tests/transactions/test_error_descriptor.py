import pytest

from domain.transaction.error_descriptor import (
    ERROR_CODE_MAX_LENGTH,
    abbreviate,
    error_code,
    error_message,
    gateway_error,
    gateway_error_code,
)
from domain.transaction.gateway_response import (
    CallErrorStatus,
    ModificationResult,
    NotificationPayload,
    PspResult,
    PurchaseResult,
)


def test_abbreviates_package_segments_greedily():
    name = "com.example.very.long.package.name.SomeExceptionClass"
    assert len(name) == 53
    assert abbreviate(name) == "c.e.v.l.p.n.SomeExceptionClass"


def test_abbreviation_stops_once_name_fits():
    assert abbreviate("com.example.util.ThingHappenedException") == "c.e.util.ThingHappenedException"
    assert abbreviate("com.mycompany.SomeLongExceptionClassName") == "c.m.SomeLongExceptionClassName"


@pytest.mark.parametrize(
    "name",
    ["a.b.C", "java.io.IOException", "org.example.ShortError", "x" * 32],
)
def test_abbreviation_leaves_fitting_names_unchanged(name):
    assert len(name) <= ERROR_CODE_MAX_LENGTH
    assert abbreviate(name) == name
    assert abbreviate(abbreviate(name)) == name


def test_name_without_dots_is_only_truncated():
    name = "ThisIsAnExtremelyLongExceptionNameWithoutAnyPackage"
    assert abbreviate(name) == name
    assert error_code(None, {"exceptionClass": name}) == name[:32]


def test_simple_name_is_never_shortened():
    name = "a.b.AnExceptionWhoseSimpleNameIsWayLongerThanThirtyTwo"
    abbreviated = abbreviate(name)
    assert abbreviated.endswith(".AnExceptionWhoseSimpleNameIsWayLongerThanThirtyTwo")
    assert error_code(None, {"exceptionClass": name}) == abbreviated[:32]


def test_message_prefers_reason_over_exception_message():
    assert error_message("Refused", {"exceptionMessage": "boom"}) == "Refused"
    assert error_message(None, {"exceptionMessage": "boom"}) == "boom"
    assert error_message(None, None) is None


def test_code_prefers_explicit_code():
    data = {"exceptionClass": "java.net.SocketTimeoutException"}
    assert error_code("Refused", data) == "Refused"
    assert error_code(None, data) == "java.net.SocketTimeoutException"
    assert error_code(None, {}) is None
    assert error_code(None, data, "Refused") == "Refused"
    assert error_code("Authorised", data, "Refused") == "Authorised"


def test_descriptor_per_variant():
    purchase = PurchaseResult(result=PspResult.REFUSED, result_code="Refused", reason="CVC Declined")
    assert gateway_error(purchase) == "CVC Declined"
    assert gateway_error_code(purchase) == "Refused"

    modification = ModificationResult(
        technically_successful=False,
        additional_data={"exceptionMessage": "timeout", "exceptionClass": "java.net.SocketTimeoutException"},
    )
    assert gateway_error(modification) == "timeout"
    assert gateway_error_code(modification) == "java.net.SocketTimeoutException"

    notification = NotificationPayload({"reason": "Expired Card", "resultCode": "Refused"})
    assert gateway_error(notification) == "Expired Card"
    assert gateway_error_code(notification) == "Refused"

    hosted_page = NotificationPayload({"pspResult": "Authorised", "fromHPP": "true"})
    assert gateway_error_code(hosted_page) == "Authorised"


@pytest.mark.parametrize(
    "response",
    [
        PurchaseResult(result=PspResult.ERROR, result_code="E" * 80),
        PurchaseResult(
            call_error_status=CallErrorStatus.RESPONSE_INVALID,
            additional_data={"exceptionClass": "org.apache.cxf.binding.soap.SoapFault.WithAnEvenLongerName"},
        ),
        ModificationResult(technically_successful=True, response="[cancelOrRefund-received]"),
        ModificationResult(
            technically_successful=False,
            additional_data={"exceptionClass": "com.example.very.long.package.name.SomeExceptionClass"},
        ),
        NotificationPayload({"exceptionClass": "NoDotsButFarTooLongToFitIntoTheErrorCodeColumn"}),
    ],
)
def test_error_code_never_exceeds_column(response):
    code = gateway_error_code(response)
    assert code is not None
    assert len(code) <= ERROR_CODE_MAX_LENGTH
