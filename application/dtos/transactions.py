"""
Transaction DTOs (Pydantic v2) exchanged with the gateway, the billing
platform and the hosted payment page collaborators.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Account(BaseModel):
    """Billing platform account metadata (read-only)."""

    id: str
    external_key: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    locale: Optional[str] = None


class UserData(BaseModel):
    customer_id: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    ip: Optional[str] = None
    locale: Optional[str] = None


class PaymentInfo(BaseModel):
    country: Optional[str] = None
    recurring_detail_id: Optional[str] = None
    recurring_type: Optional[str] = None
    capture_delay_hours: Optional[int] = None
    installments: Optional[int] = None
    continuous_authentication: Optional[bool] = None
    issuer_country: Optional[str] = None
    acquirer: Optional[str] = None
    acquirer_mid: Optional[str] = None

    # 3-D Secure
    pa_res: Optional[str] = None
    md: Optional[str] = None
    term_url: Optional[str] = None
    user_agent: Optional[str] = None
    accept_header: Optional[str] = None
    three_d_threshold: Optional[int] = None

    # Hosted payment page
    skin_code: Optional[str] = None
    ship_before_date: Optional[str] = None
    session_validity: Optional[str] = None
    brand_code: Optional[str] = None
    allowed_methods: Optional[str] = None
    blocked_methods: Optional[str] = None


class PaymentData(BaseModel):
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    transaction_external_key: str
    payment_info: PaymentInfo = Field(default_factory=PaymentInfo)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        u = v.upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        return u


class PendingPayment(BaseModel):
    """Pending payment created on the billing platform before the shopper is redirected."""

    kb_payment_id: str
    kb_transaction_id: str
    transaction_external_key: str


class FormDescriptor(BaseModel):
    kb_account_id: str
    form_url: str
    form_fields: dict[str, str] = Field(default_factory=dict)


class NotificationItem(BaseModel):
    """One item of an asynchronous gateway notification."""

    event_code: str
    success: bool
    psp_reference: Optional[str] = None
    original_reference: Optional[str] = None
    merchant_reference: Optional[str] = None
    merchant_account_code: Optional[str] = None
    reason: Optional[str] = None
    payment_method: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    event_date: Optional[str] = None
    additional_data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)
