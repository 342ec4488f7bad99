"""
Transaction routing: decide which gateway call (if any) serves a transaction.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from domain.transaction.entity import ResponseRecord, TransactionType


class CallMode(str, Enum):
    RECORD_ONLY = "RECORD_ONLY"
    SECURE_CONTINUATION = "SECURE_CONTINUATION"
    CREDIT_CALL = "CREDIT_CALL"
    AUTHORIZE_OR_PURCHASE_CALL = "AUTHORIZE_OR_PURCHASE_CALL"
    MODIFICATION_CALL = "MODIFICATION_CALL"


INITIAL_TRANSACTION_TYPES = frozenset(
    {TransactionType.AUTHORIZE, TransactionType.PURCHASE, TransactionType.CREDIT}
)
FOLLOW_UP_TRANSACTION_TYPES = frozenset(
    {TransactionType.CAPTURE, TransactionType.VOID, TransactionType.REFUND}
)


@dataclass(frozen=True)
class RoutingInput:
    transaction_type: TransactionType
    from_hpp: bool = False
    secure_continuation: bool = False

    @property
    def is_credit(self) -> bool:
        return self.transaction_type == TransactionType.CREDIT


def is_initial(transaction_type: TransactionType) -> bool:
    return transaction_type in INITIAL_TRANSACTION_TYPES


def is_secure_continuation(prior_authorization: Optional[ResponseRecord], kb_transaction_id: str) -> bool:
    """A prior successful authorization for the same billing transaction means 3-D Secure is being resumed."""
    return prior_authorization is not None and str(prior_authorization.kb_transaction_id) == str(kb_transaction_id)


def route(routing: RoutingInput) -> CallMode:
    # Pending payments created for the hosted page are flagged fromHPP as
    # well; the flag must win so they are never taken for a 3-D Secure resume.
    if routing.from_hpp:
        return CallMode.RECORD_ONLY
    if is_initial(routing.transaction_type):
        if routing.secure_continuation:
            return CallMode.SECURE_CONTINUATION
        if routing.is_credit:
            return CallMode.CREDIT_CALL
        return CallMode.AUTHORIZE_OR_PURCHASE_CALL
    return CallMode.MODIFICATION_CALL
