import pytest

from application.services.transaction_service import TransactionService
from domain.common.exceptions import DomainValidationException, HostedPaymentPageException


@pytest.mark.asyncio
async def test_form_descriptor_without_pending_payment(service, billing, store):
    descriptor = await service.build_form_descriptor(
        "acc-1",
        {"amount": "12.50"},
        {"paymentExternalKey": "order-42", "customerLocale": "en_GB"},
    )

    assert descriptor.kb_account_id == "acc-1"
    assert descriptor.form_url == "https://hpp.example.com/pay"
    fields = descriptor.form_fields
    assert fields["merchantReference"] == "order-42"
    assert fields["paymentAmount"] == "1250"
    assert fields["currencyCode"] == "EUR"
    assert fields["skinCode"] == "skinNL"
    assert fields["merchantAccount"] == "DefaultMerchant"
    assert fields["shopperLocale"] == "en_GB"
    assert "sessionValidity" in fields

    assert billing.pending_payments == []
    assert len(store.hpp_requests) == 1
    request = store.hpp_requests[0]
    assert request.transaction_external_key == "order-42"
    assert request.kb_payment_id is None


@pytest.mark.asyncio
async def test_form_descriptor_creates_pending_payment(service, billing, store):
    descriptor = await service.build_form_descriptor(
        "acc-1",
        {"amount": "5", "currency": "usd", "country": "US"},
        {"createPendingPayment": "true", "authMode": "true", "hppTarget": "https://custom/pay"},
    )

    assert descriptor.form_url == "https://custom/pay"
    assert descriptor.form_fields["currencyCode"] == "USD"
    assert descriptor.form_fields["merchantAccount"] == "UsMerchant"
    assert descriptor.form_fields["skinCode"] == "defaultSkin"

    pending = billing.pending_payments[0]
    assert pending["auth_mode"] is True
    assert pending["properties"] == {"fromHPP": "true", "fromHPPTransactionStatus": "PENDING"}
    request = store.hpp_requests[0]
    assert request.kb_payment_id == "pending-payment"
    assert request.kb_transaction_id == "pending-transaction"
    assert request.transaction_external_key == pending["transaction_external_key"]


@pytest.mark.asyncio
async def test_form_descriptor_requires_amount(service, store):
    with pytest.raises(DomainValidationException) as exc_info:
        await service.build_form_descriptor("acc-1", {}, {})

    assert exc_info.value.field == "amount"
    assert store.hpp_requests == []


@pytest.mark.asyncio
async def test_form_descriptor_wraps_form_failures(uow_factory, gateway, billing, gateway_config):
    class BrokenPage:
        hpp_target = "https://broken"

        def get_form_parameter(self, *args, **kwargs):
            raise RuntimeError("signing key missing")

    service = TransactionService(
        uow_factory, gateway, billing, hosted_payment_page=BrokenPage(), settings=gateway_config
    )

    with pytest.raises(HostedPaymentPageException):
        await service.build_form_descriptor("acc-1", {"amount": "1.00"}, {})
