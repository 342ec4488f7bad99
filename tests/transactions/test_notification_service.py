import json
from decimal import Decimal

import pytest

from application.services.notification_service import NotificationService
from domain.common.exceptions import DomainValidationException, RecordStoreException
from domain.transaction.entity import PaymentPluginStatus, TransactionType
from infrastructure.external.gateway.notification_decoder import JsonNotificationDecoder


def _notification(*items) -> str:
    return json.dumps(
        {"live": "false", "notificationItems": [{"NotificationRequestItem": item} for item in items]}
    )


def _item(event_code, success=True, **extra):
    item = {
        "eventCode": event_code,
        "success": "true" if success else "false",
        "merchantAccountCode": "DefaultMerchant",
        "amount": {"value": 1000, "currency": "EUR"},
        "eventDate": "2024-05-01T12:00:00+02:00",
    }
    item.update(extra)
    return item


@pytest.fixture
def notifications(service, uow_factory):
    return NotificationService(JsonNotificationDecoder(), service, uow_factory)


@pytest.mark.asyncio
async def test_capture_notification_matches_row_by_psp_reference(service, notifications, gateway, store):
    await service.authorize_payment("acc-1", "pay-1", "tx-auth", None, Decimal("10.00"), "EUR")
    capture = await service.capture_payment("acc-1", "pay-1", "tx-cap", None, Decimal("10.00"), "EUR")
    calls = len(gateway.calls)

    ack = await notifications.process_notification(
        _notification(_item("CAPTURE", pspReference=capture.psp_reference, originalReference="orig"))
    )

    assert ack == "[accepted]"
    assert len(gateway.calls) == calls
    record = store.responses[-1]
    assert record.kb_transaction_id == "tx-cap"
    assert record.transaction_type == TransactionType.CAPTURE
    assert record.psp_result == "Received"
    assert record.additional_data["originalReference"] == "orig"

    infos = await service.get_payment_info("pay-1")
    assert infos[-1].status == PaymentPluginStatus.PROCESSED


@pytest.mark.asyncio
async def test_authorisation_notification_for_hosted_page_purchase(service, notifications, store):
    await service.build_form_descriptor(
        "acc-1",
        {"amount": "10.00"},
        {"createPendingPayment": "true", "paymentExternalKey": "order-7"},
    )

    await notifications.process_notification(
        _notification(_item("AUTHORISATION", pspReference="PSP-HPP", merchantReference="order-7", reason="1234:7777:12/2030"))
    )

    record = store.responses[-1]
    assert record.kb_payment_id == "pending-payment"
    assert record.transaction_type == TransactionType.PURCHASE
    assert record.psp_result == "Authorised"
    assert record.psp_reference == "PSP-HPP"
    assert record.amount == Decimal("10.00")


@pytest.mark.asyncio
async def test_refused_notification_is_recorded_as_error(service, notifications, store):
    await service.build_form_descriptor(
        "acc-1",
        {"amount": "10.00"},
        {"createPendingPayment": "true", "authMode": "true", "paymentExternalKey": "order-8"},
    )

    await notifications.process_notification(
        _notification(_item("AUTHORISATION", success=False, pspReference="PSP-R", merchantReference="order-8", reason="Refused"))
    )

    record = store.responses[-1]
    assert record.transaction_type == TransactionType.AUTHORIZE
    assert record.psp_result == "Refused"
    info = (await service.get_payment_info("pending-payment"))[-1]
    assert info.status == PaymentPluginStatus.ERROR
    assert info.gateway_error == "Refused"


@pytest.mark.asyncio
async def test_unmatched_and_unknown_items_are_skipped(notifications, store):
    ack = await notifications.process_notification(
        _notification(
            _item("AUTHORISATION", pspReference="NOPE", merchantReference="unknown-order"),
            _item("REPORT_AVAILABLE", pspReference="REPORT"),
        )
    )

    assert ack == "[accepted]"
    assert store.responses == []


@pytest.mark.asyncio
async def test_hosted_page_request_without_pending_payment_is_skipped(service, notifications, store):
    await service.build_form_descriptor("acc-1", {"amount": "10.00"}, {"paymentExternalKey": "order-9"})

    await notifications.process_notification(
        _notification(_item("AUTHORISATION", pspReference="PSP-9", merchantReference="order-9"))
    )

    assert store.responses == []


@pytest.mark.asyncio
async def test_malformed_notification_is_rejected(notifications):
    with pytest.raises(DomainValidationException):
        await notifications.process_notification('{"notificationItems": [{"NotificationRequestItem": {}}]}')


def test_decoder_converts_minor_units():
    items = JsonNotificationDecoder().decode(
        _notification(_item("REFUND", amount={"value": 1500, "currency": "jpy"}, additionalData=None))
    )

    assert len(items) == 1
    assert items[0].amount == Decimal("1500")
    assert items[0].currency == "JPY"
    assert items[0].success is True
    assert items[0].additional_data == {}


@pytest.mark.asyncio
async def test_redelivered_batch_records_each_item_once(service, notifications, store):
    await service.authorize_payment("acc-1", "pay-1", "tx-auth", None, Decimal("10.00"), "EUR")
    capture = await service.capture_payment("acc-1", "pay-1", "tx-cap", None, Decimal("10.00"), "EUR")
    refund = await service.refund_payment("acc-1", "pay-1", "tx-ref", None, Decimal("4.00"), "EUR")
    capture_item = _item("CAPTURE", pspReference=capture.psp_reference)
    refund_item = _item("REFUND", pspReference=refund.psp_reference)

    await notifications.process_notification(_notification(capture_item))
    rows = len(store.responses)
    await notifications.process_notification(_notification(capture_item, refund_item))

    assert len(store.responses) == rows + 1
    assert store.responses[-1].kb_transaction_id == "tx-ref"
    assert store.notification_records == 2


@pytest.mark.asyncio
async def test_record_store_failure_aborts_batch_for_redelivery(service, notifications, store):
    await service.authorize_payment("acc-1", "pay-1", "tx-auth", None, Decimal("10.00"), "EUR")
    capture = await service.capture_payment("acc-1", "pay-1", "tx-cap", None, Decimal("10.00"), "EUR")
    store.fail_writes = True

    with pytest.raises(RecordStoreException):
        await notifications.process_notification(_notification(_item("CAPTURE", pspReference=capture.psp_reference)))

    store.fail_writes = False
    assert await notifications.process_notification(
        _notification(_item("CAPTURE", pspReference=capture.psp_reference))
    ) == "[accepted]"
    assert store.responses[-1].additional_data["eventCode"] == "CAPTURE"
