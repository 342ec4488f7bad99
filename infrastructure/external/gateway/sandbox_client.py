"""
In-memory gateway used for development and tests.

No network call is made. Outcomes follow a few simple rules so every branch
of the orchestration can be exercised:

- an amount at or above ``threeDThreshold`` (payment info) asks for 3-D
  Secure (``RedirectShopper`` with the issuer form parameters);
- ``authorize_3d_secure`` authorises when ``PaRes`` is present, else refuses;
- ``refuse_amounts`` are refused with ``reason``;
- ``call_error_status`` short-circuits every purchase call as a technical
  failure; ``modification_successful=False`` does the same for modifications.

Every call is appended to ``calls`` so callers can assert on it.
"""
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional

from application.dtos.transactions import PaymentData, UserData
from core.logging_config import get_logger
from domain.transaction.gateway_response import (
    CallErrorStatus,
    ModificationResult,
    PspResult,
    PurchaseResult,
)

from .amounts import to_minor_units


logger = get_logger(__name__)

SANDBOX_ISSUER_URL = "https://test.adyen.com/hpp/3d/validate.shtml"

_MODIFICATION_ACKS = {
    "capture": PspResult.RECEIVED.ids[1],
    "cancel": PspResult.RECEIVED.ids[2],
    "refund": PspResult.RECEIVED.ids[3],
}


def _psp_reference() -> str:
    return uuid.uuid4().hex[:16].upper()


class SandboxGatewayClient:
    provider = "sandbox"

    def __init__(
        self,
        *,
        refuse_amounts: Optional[set[Decimal]] = None,
        refusal_reason: str = "Refused",
        call_error_status: Optional[CallErrorStatus] = None,
        modification_successful: bool = True,
    ) -> None:
        self.refuse_amounts = set(refuse_amounts or ())
        self.refusal_reason = refusal_reason
        self.call_error_status = call_error_status
        self.modification_successful = modification_successful
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _record(self, operation: str, **kwargs: Any) -> None:
        self.calls.append((operation, kwargs))
        logger.debug("sandbox_gateway_call", operation=operation, merchant_account=kwargs.get("merchant_account"))

    def _technical_failure(self) -> Optional[PurchaseResult]:
        if self.call_error_status is None:
            return None
        return PurchaseResult(
            call_error_status=self.call_error_status,
            additional_data={
                "exceptionClass": "sandbox.gateway.SimulatedFailure",
                "exceptionMessage": f"Simulated {self.call_error_status.value}",
            },
        )

    def _authorised(self, payment_data: PaymentData, result_code: str = "Authorised") -> PurchaseResult:
        if payment_data.amount in self.refuse_amounts:
            return PurchaseResult(
                result=PspResult.REFUSED,
                result_code=PspResult.REFUSED.code,
                psp_reference=_psp_reference(),
                reason=self.refusal_reason,
            )
        return PurchaseResult(
            result=PspResult.AUTHORISED,
            result_code=result_code,
            psp_reference=_psp_reference(),
            auth_code=str(uuid.uuid4().int)[:6],
        )

    async def authorize(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        user_data: UserData,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> PurchaseResult:
        self._record(
            "authorize",
            merchant_account=merchant_account,
            payment_data=payment_data,
            user_data=user_data,
            split_settlement_data=split_settlement_data,
        )
        failure = self._technical_failure()
        if failure is not None:
            return failure

        threshold = payment_data.payment_info.three_d_threshold
        if threshold is not None and payment_data.amount is not None and payment_data.currency:
            if to_minor_units(payment_data.amount, payment_data.currency) >= threshold:
                md = uuid.uuid4().hex
                return PurchaseResult(
                    result=PspResult.REDIRECT_SHOPPER,
                    result_code=PspResult.REDIRECT_SHOPPER.code,
                    psp_reference=_psp_reference(),
                    form_parameters={
                        "PaReq": uuid.uuid4().hex,
                        "MD": md,
                        "TermUrl": payment_data.payment_info.term_url or "",
                        "IssuerUrl": SANDBOX_ISSUER_URL,
                    },
                )
        return self._authorised(payment_data)

    async def authorize_3d_secure(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        user_data: UserData,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> PurchaseResult:
        self._record(
            "authorize_3d_secure",
            merchant_account=merchant_account,
            payment_data=payment_data,
            user_data=user_data,
            split_settlement_data=split_settlement_data,
        )
        failure = self._technical_failure()
        if failure is not None:
            return failure
        if not payment_data.payment_info.pa_res:
            return PurchaseResult(
                result=PspResult.REFUSED,
                result_code=PspResult.REFUSED.code,
                psp_reference=_psp_reference(),
                reason="3D Not Authenticated",
            )
        return self._authorised(payment_data)

    async def credit(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        user_data: UserData,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> PurchaseResult:
        self._record(
            "credit",
            merchant_account=merchant_account,
            payment_data=payment_data,
            user_data=user_data,
            split_settlement_data=split_settlement_data,
        )
        failure = self._technical_failure()
        if failure is not None:
            return failure
        return PurchaseResult(
            result=PspResult.RECEIVED,
            result_code=PspResult.RECEIVED.code,
            psp_reference=_psp_reference(),
        )

    async def _modify(
        self,
        operation: str,
        merchant_account: str,
        payment_data: PaymentData,
        psp_reference: str,
        split_settlement_data: Optional[dict[str, Any]],
    ) -> ModificationResult:
        self._record(
            operation,
            merchant_account=merchant_account,
            payment_data=payment_data,
            psp_reference=psp_reference,
            split_settlement_data=split_settlement_data,
        )
        if not self.modification_successful:
            return ModificationResult(
                technically_successful=False,
                additional_data={
                    "exceptionClass": "sandbox.gateway.SimulatedModificationFailure",
                    "exceptionMessage": f"Simulated {operation} failure",
                },
            )
        return ModificationResult(
            technically_successful=True,
            psp_reference=_psp_reference(),
            response=_MODIFICATION_ACKS[operation],
            additional_data={"originalReference": psp_reference},
        )

    async def capture(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        psp_reference: str,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> ModificationResult:
        return await self._modify("capture", merchant_account, payment_data, psp_reference, split_settlement_data)

    async def cancel(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        psp_reference: str,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> ModificationResult:
        return await self._modify("cancel", merchant_account, payment_data, psp_reference, split_settlement_data)

    async def refund(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        psp_reference: str,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> ModificationResult:
        return await self._modify("refund", merchant_account, payment_data, psp_reference, split_settlement_data)
