"""
Billing platform port: account metadata and payment bookkeeping owned by the host.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from application.dtos.transactions import Account, PendingPayment


@runtime_checkable
class BillingPlatform(Protocol):

    async def get_account(self, kb_account_id: str) -> Account: ...

    async def get_transaction_external_key(self, kb_payment_id: str, kb_transaction_id: str) -> str: ...

    async def create_pending_payment(
        self,
        *,
        auth_mode: bool,
        account: Account,
        amount: Decimal,
        currency: str,
        transaction_external_key: str,
        properties: dict[str, Any],
    ) -> PendingPayment: ...
