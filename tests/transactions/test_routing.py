from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.transaction.entity import ResponseRecord, TransactionType
from domain.transaction.routing import CallMode, RoutingInput, is_secure_continuation, route


@pytest.mark.parametrize(
    "transaction_type, from_hpp, continuation, expected",
    [
        (TransactionType.AUTHORIZE, True, True, CallMode.RECORD_ONLY),
        (TransactionType.CAPTURE, True, False, CallMode.RECORD_ONLY),
        (TransactionType.AUTHORIZE, False, True, CallMode.SECURE_CONTINUATION),
        (TransactionType.PURCHASE, False, True, CallMode.SECURE_CONTINUATION),
        (TransactionType.CREDIT, False, False, CallMode.CREDIT_CALL),
        (TransactionType.AUTHORIZE, False, False, CallMode.AUTHORIZE_OR_PURCHASE_CALL),
        (TransactionType.PURCHASE, False, False, CallMode.AUTHORIZE_OR_PURCHASE_CALL),
        (TransactionType.CAPTURE, False, False, CallMode.MODIFICATION_CALL),
        (TransactionType.VOID, False, True, CallMode.MODIFICATION_CALL),
        (TransactionType.REFUND, False, False, CallMode.MODIFICATION_CALL),
    ],
)
def test_route_table(transaction_type, from_hpp, continuation, expected):
    routing = RoutingInput(transaction_type=transaction_type, from_hpp=from_hpp, secure_continuation=continuation)
    assert route(routing) == expected


def _authorization(kb_transaction_id: str) -> ResponseRecord:
    return ResponseRecord(
        id=1,
        kb_account_id="acc",
        kb_payment_id="pay",
        kb_transaction_id=kb_transaction_id,
        transaction_type=TransactionType.AUTHORIZE,
        amount=Decimal("10"),
        currency="EUR",
        psp_result="RedirectShopper",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_continuation_requires_same_billing_transaction():
    assert is_secure_continuation(_authorization("tx-1"), "tx-1")
    assert not is_secure_continuation(_authorization("tx-1"), "tx-2")
    assert not is_secure_continuation(None, "tx-1")
