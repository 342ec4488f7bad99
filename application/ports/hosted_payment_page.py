"""
Hosted payment page port. Form parameter signing lives behind this protocol.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.transactions import PaymentData, UserData


@runtime_checkable
class HostedPaymentPage(Protocol):

    hpp_target: str

    def get_form_parameter(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        user_data: UserData,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> dict[str, str]: ...
