import pytest

from application.dtos.transactions import Account
from application.services.payment_data_mapping import (
    hpp_transaction_external_key,
    payment_method_properties,
    to_payment_info,
    to_split_settlement_data,
    to_user_data,
)
from domain.common.exceptions import DomainValidationException
from domain.transaction.entity import PaymentMethodRecord
from domain.transaction.properties import find_value, is_true, merge


ACCOUNT = Account(
    id="acc-1",
    external_key="customer-1",
    country="DE",
    currency="EUR",
    email="a@example.com",
    first_name="Ada",
    last_name="Lovelace",
    locale="de_DE",
)


def test_user_data_falls_back_to_account():
    user = to_user_data(ACCOUNT, {"ip": "10.0.0.1"})
    assert user.customer_id == "customer-1"
    assert user.email == "a@example.com"
    assert user.locale == "de_DE"
    assert user.ip == "10.0.0.1"

    no_key = ACCOUNT.model_copy(update={"external_key": None})
    assert to_user_data(no_key, {}).customer_id == "acc-1"


def test_user_data_properties_win():
    user = to_user_data(ACCOUNT, {"customerId": "c-9", "email": "b@example.com", "customerLocale": "fr_FR"})
    assert (user.customer_id, user.email, user.locale) == ("c-9", "b@example.com", "fr_FR")


def test_payment_info_from_properties():
    properties = {
        "country": "FR",
        "captureDelayHours": "2",
        "installments": "3",
        "contAuth": "True",
        "PaRes": "pares",
        "MD": "md",
        "threeDThreshold": "1000",
        "acquirer": "AcquirerX",
        "acquirerMID": "mid-1",
        "issuerCountry": "BE",
        "skin": "s1",
    }
    info = to_payment_info(ACCOUNT, PaymentMethodRecord.empty("pm-1"), properties)

    assert info.country == "FR"
    assert info.capture_delay_hours == 2
    assert info.installments == 3
    assert info.continuous_authentication is True
    assert (info.pa_res, info.md, info.three_d_threshold) == ("pares", "md", 1000)
    assert (info.acquirer, info.acquirer_mid, info.issuer_country) == ("AcquirerX", "mid-1", "BE")
    assert info.skin_code == "s1"


def test_payment_info_defaults():
    method = PaymentMethodRecord(kb_payment_method_id="pm-1", token="TOKEN")
    info = to_payment_info(ACCOUNT, method, {})
    assert info.country == "DE"
    assert info.recurring_detail_id == "TOKEN"
    assert info.continuous_authentication is None
    assert info.capture_delay_hours is None


def test_non_numeric_property_is_caller_error():
    with pytest.raises(DomainValidationException) as exc_info:
        to_payment_info(ACCOUNT, None, {"installments": "three"})
    assert exc_info.value.field == "installments"


def test_payment_method_properties_include_token():
    method = PaymentMethodRecord(kb_payment_method_id="pm-1", token="TOKEN", additional_data={"recurringType": "ONECLICK"})
    assert payment_method_properties(method) == {"recurringType": "ONECLICK", "recurringDetailId": "TOKEN"}
    assert payment_method_properties(PaymentMethodRecord.empty(None)) == {}


def test_split_settlement_and_external_key():
    assert to_split_settlement_data({"a": "1"}) is None
    assert to_split_settlement_data({"splitSettlementData.api": 1}) == {"api": "1"}
    assert hpp_transaction_external_key({"paymentExternalKey": "order-1"}) == "order-1"
    generated = hpp_transaction_external_key({})
    assert generated and generated != hpp_transaction_external_key({})


def test_property_helpers():
    assert is_true("TRUE") and is_true(" true ") and not is_true("yes") and not is_true(None)
    assert find_value({"n": 5}, "n") == "5"
    assert find_value({}, "n", "d") == "d"
    assert merge({"a": 1, "b": 1}, None, {"b": 2}) == {"a": 1, "b": 2}
