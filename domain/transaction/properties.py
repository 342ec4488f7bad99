"""
Plugin property keys and helpers for the free-form property bag carried by
every transaction attempt.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

# Shared properties
PROPERTY_PAYMENT_PROCESSOR_ACCOUNT_ID = "paymentProcessorAccountId"
PROPERTY_ACQUIRER = "acquirer"
PROPERTY_ACQUIRER_MID = "acquirerMID"
PROPERTY_INSTALLMENTS = "installments"
PROPERTY_RECURRING_TYPE = "recurringType"
PROPERTY_CAPTURE_DELAY_HOURS = "captureDelayHours"
PROPERTY_CONTINUOUS_AUTHENTICATION = "contAuth"
PROPERTY_COUNTRY = "country"
PROPERTY_AMOUNT = "amount"
PROPERTY_CURRENCY = "currency"
PROPERTY_SPLIT_SETTLEMENT_DATA_PREFIX = "splitSettlementData."

# API
PROPERTY_RECURRING_DETAIL_ID = "recurringDetailId"

# 3-D Secure
PROPERTY_PA_RES = "PaRes"
PROPERTY_MD = "MD"
PROPERTY_TERM_URL = "TermUrl"
PROPERTY_USER_AGENT = "userAgent"
PROPERTY_ACCEPT_HEADER = "acceptHeader"
PROPERTY_THREE_D_THRESHOLD = "threeDThreshold"

# Credit cards
PROPERTY_CC_ISSUER_COUNTRY = "issuerCountry"

# User data
PROPERTY_FIRST_NAME = "firstName"
PROPERTY_LAST_NAME = "lastName"
PROPERTY_IP = "ip"
PROPERTY_CUSTOMER_LOCALE = "customerLocale"
PROPERTY_CUSTOMER_ID = "customerId"
PROPERTY_EMAIL = "email"

# HPP
PROPERTY_CREATE_PENDING_PAYMENT = "createPendingPayment"
PROPERTY_AUTH_MODE = "authMode"
PROPERTY_PAYMENT_EXTERNAL_KEY = "paymentExternalKey"
PROPERTY_SHIP_BEFORE_DATE = "shipBeforeDate"
PROPERTY_SKIN_CODE = "skin"
PROPERTY_SESSION_VALIDITY = "sessionValidity"
PROPERTY_ALLOWED_METHODS = "allowedMethods"
PROPERTY_BLOCKED_METHODS = "blockedMethods"
PROPERTY_BRAND_CODE = "brandCode"
PROPERTY_HPP_TARGET = "hppTarget"

# Internals
PROPERTY_EVENT_CODE = "eventCode"
PROPERTY_MERCHANT_REFERENCE = "merchantReference"
PROPERTY_ORIGINAL_REFERENCE = "originalReference"
PROPERTY_PSP_REFERENCE = "pspReference"
PROPERTY_PSP_RESULT = "pspResult"
PROPERTY_RESULT_CODE = "resultCode"
PROPERTY_AUTH_CODE = "authCode"
PROPERTY_REASON = "reason"
PROPERTY_SUCCESS = "success"
PROPERTY_FROM_HPP = "fromHPP"
PROPERTY_FROM_HPP_TRANSACTION_STATUS = "fromHPPTransactionStatus"


def find_value(properties: Optional[Mapping[str, Any]], key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the property as a string, or ``default`` when it is absent."""
    if not properties:
        return default
    value = properties.get(key)
    if value is None:
        return default
    return str(value)


def is_true(value: Any) -> bool:
    # Only a case-insensitive "true" counts
    if value is None:
        return False
    return str(value).strip().lower() == "true"


def merge(*bags: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge property bags; later bags win."""
    merged: dict[str, Any] = {}
    for bag in bags:
        if bag:
            merged.update(bag)
    return merged
