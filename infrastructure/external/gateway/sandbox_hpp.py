"""
Hosted payment page adapter for the sandbox: builds the form fields without
signing them.
"""
from __future__ import annotations

from typing import Any, Optional

from application.dtos.transactions import PaymentData, UserData

from .amounts import to_minor_units


class SandboxHostedPaymentPage:

    def __init__(self, hpp_target: str) -> None:
        self.hpp_target = hpp_target

    def get_form_parameter(
        self,
        merchant_account: str,
        payment_data: PaymentData,
        user_data: UserData,
        split_settlement_data: Optional[dict[str, Any]] = None,
    ) -> dict[str, str]:
        if payment_data.amount is None or payment_data.currency is None:
            raise ValueError("amount and currency are required for a hosted payment page form")
        info = payment_data.payment_info
        fields = {
            "merchantAccount": merchant_account,
            "merchantReference": payment_data.transaction_external_key,
            "paymentAmount": str(to_minor_units(payment_data.amount, payment_data.currency)),
            "currencyCode": payment_data.currency,
            "skinCode": info.skin_code,
            "sessionValidity": info.session_validity,
            "shipBeforeDate": info.ship_before_date,
            "countryCode": info.country,
            "brandCode": info.brand_code,
            "allowedMethods": info.allowed_methods,
            "blockedMethods": info.blocked_methods,
            "shopperLocale": user_data.locale,
            "shopperEmail": user_data.email,
            "shopperReference": user_data.customer_id,
        }
        for key, value in (split_settlement_data or {}).items():
            fields[f"splitSettlementData.{key}"] = value
        return {key: str(value) for key, value in fields.items() if value is not None}
