"""
Gateway client port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
Technical failures the client can classify are returned inside the result
(``call_error_status``); anything it raises is treated as a failed call.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.transactions import PaymentData, UserData
from domain.transaction.gateway_response import ModificationResult, PurchaseResult


@runtime_checkable
class GatewayClient(Protocol):
    """Card-payment gateway operations used by the orchestration engine."""

    provider: str

    async def authorize(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        user_data: UserData,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> PurchaseResult: ...

    async def authorize_3d_secure(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        user_data: UserData,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> PurchaseResult: ...

    async def credit(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        user_data: UserData,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> PurchaseResult: ...

    async def capture(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        psp_reference: str,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> ModificationResult: ...

    async def cancel(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        psp_reference: str,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> ModificationResult: ...

    async def refund(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        psp_reference: str,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> ModificationResult: ...
