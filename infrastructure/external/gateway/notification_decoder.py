"""
Decoder for the gateway's JSON notification envelope:

    {"live": "false",
     "notificationItems": [{"NotificationRequestItem": {...}}, ...]}
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from application.dtos.transactions import NotificationItem
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException

from .amounts import from_minor_units


logger = get_logger(__name__)


class _Amount(BaseModel):
    value: int
    currency: str


class _NotificationRequestItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_code: str = Field(alias="eventCode")
    success: bool
    psp_reference: Optional[str] = Field(default=None, alias="pspReference")
    original_reference: Optional[str] = Field(default=None, alias="originalReference")
    merchant_reference: Optional[str] = Field(default=None, alias="merchantReference")
    merchant_account_code: Optional[str] = Field(default=None, alias="merchantAccountCode")
    reason: Optional[str] = None
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    amount: Optional[_Amount] = None
    event_date: Optional[str] = Field(default=None, alias="eventDate")
    additional_data: dict[str, Any] = Field(default_factory=dict, alias="additionalData")

    @field_validator("success", mode="before")
    @classmethod
    def _parse_success(cls, v):
        # The gateway sends "true"/"false" strings
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return v

    @field_validator("additional_data", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return v or {}


class _NotificationItemWrapper(BaseModel):
    item: _NotificationRequestItem = Field(alias="NotificationRequestItem")


class _NotificationEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    live: Optional[str] = None
    notification_items: list[_NotificationItemWrapper] = Field(default_factory=list, alias="notificationItems")


class JsonNotificationDecoder:

    def decode(self, notification: str) -> list[NotificationItem]:
        try:
            envelope = _NotificationEnvelope.model_validate_json(notification)
        except ValidationError as exc:
            logger.warning("notification_decode_failed", errors=exc.error_count())
            raise DomainValidationException(
                "Invalid notification payload",
                field="notification",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc

        items = []
        for wrapper in envelope.notification_items:
            raw = wrapper.item
            amount = currency = None
            if raw.amount is not None:
                currency = raw.amount.currency.upper()
                amount = from_minor_units(raw.amount.value, currency)
            items.append(
                NotificationItem(
                    event_code=raw.event_code,
                    success=raw.success,
                    psp_reference=raw.psp_reference,
                    original_reference=raw.original_reference,
                    merchant_reference=raw.merchant_reference,
                    merchant_account_code=raw.merchant_account_code,
                    reason=raw.reason,
                    payment_method=raw.payment_method,
                    amount=amount,
                    currency=currency,
                    event_date=raw.event_date,
                    additional_data=raw.additional_data,
                )
            )
        return items
