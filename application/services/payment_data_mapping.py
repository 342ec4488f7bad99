"""
Mapping of billing-side data (account, payment method, call properties) into
the normalized payment data and user data handed to the gateway.
"""
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Mapping, Optional

from application.dtos.transactions import Account, PaymentData, PaymentInfo, UserData
from domain.transaction.entity import PaymentMethodRecord
from domain.transaction.properties import (
    PROPERTY_ACCEPT_HEADER,
    PROPERTY_ACQUIRER,
    PROPERTY_ACQUIRER_MID,
    PROPERTY_ALLOWED_METHODS,
    PROPERTY_BLOCKED_METHODS,
    PROPERTY_BRAND_CODE,
    PROPERTY_CAPTURE_DELAY_HOURS,
    PROPERTY_CC_ISSUER_COUNTRY,
    PROPERTY_CONTINUOUS_AUTHENTICATION,
    PROPERTY_COUNTRY,
    PROPERTY_CUSTOMER_ID,
    PROPERTY_CUSTOMER_LOCALE,
    PROPERTY_EMAIL,
    PROPERTY_FIRST_NAME,
    PROPERTY_INSTALLMENTS,
    PROPERTY_IP,
    PROPERTY_LAST_NAME,
    PROPERTY_MD,
    PROPERTY_PA_RES,
    PROPERTY_PAYMENT_EXTERNAL_KEY,
    PROPERTY_RECURRING_DETAIL_ID,
    PROPERTY_RECURRING_TYPE,
    PROPERTY_SESSION_VALIDITY,
    PROPERTY_SHIP_BEFORE_DATE,
    PROPERTY_SKIN_CODE,
    PROPERTY_SPLIT_SETTLEMENT_DATA_PREFIX,
    PROPERTY_TERM_URL,
    PROPERTY_THREE_D_THRESHOLD,
    PROPERTY_USER_AGENT,
    find_value,
    is_true,
)
from domain.common.exceptions import DomainValidationException


def _to_int(properties: Mapping[str, Any], key: str) -> Optional[int]:
    raw = find_value(properties, key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise DomainValidationException(f"{key} must be an integer, got {raw!r}", field=key) from exc


def to_user_data(account: Optional[Account], properties: Mapping[str, Any]) -> UserData:
    customer_id = find_value(properties, PROPERTY_CUSTOMER_ID)
    if customer_id is None and account is not None:
        customer_id = account.external_key or account.id
    return UserData(
        customer_id=customer_id,
        email=find_value(properties, PROPERTY_EMAIL, account.email if account else None),
        first_name=find_value(properties, PROPERTY_FIRST_NAME, account.first_name if account else None),
        last_name=find_value(properties, PROPERTY_LAST_NAME, account.last_name if account else None),
        ip=find_value(properties, PROPERTY_IP),
        locale=find_value(properties, PROPERTY_CUSTOMER_LOCALE, account.locale if account else None),
    )


def to_payment_info(
    account: Optional[Account],
    payment_method: Optional[PaymentMethodRecord],
    properties: Mapping[str, Any],
) -> PaymentInfo:
    continuous_authentication = find_value(properties, PROPERTY_CONTINUOUS_AUTHENTICATION)
    return PaymentInfo(
        country=find_value(properties, PROPERTY_COUNTRY, account.country if account else None),
        recurring_detail_id=find_value(
            properties,
            PROPERTY_RECURRING_DETAIL_ID,
            payment_method.token if payment_method else None,
        ),
        recurring_type=find_value(properties, PROPERTY_RECURRING_TYPE),
        capture_delay_hours=_to_int(properties, PROPERTY_CAPTURE_DELAY_HOURS),
        installments=_to_int(properties, PROPERTY_INSTALLMENTS),
        continuous_authentication=(
            None if continuous_authentication is None else is_true(continuous_authentication)
        ),
        issuer_country=find_value(properties, PROPERTY_CC_ISSUER_COUNTRY),
        acquirer=find_value(properties, PROPERTY_ACQUIRER),
        acquirer_mid=find_value(properties, PROPERTY_ACQUIRER_MID),
        pa_res=find_value(properties, PROPERTY_PA_RES),
        md=find_value(properties, PROPERTY_MD),
        term_url=find_value(properties, PROPERTY_TERM_URL),
        user_agent=find_value(properties, PROPERTY_USER_AGENT),
        accept_header=find_value(properties, PROPERTY_ACCEPT_HEADER),
        three_d_threshold=_to_int(properties, PROPERTY_THREE_D_THRESHOLD),
        skin_code=find_value(properties, PROPERTY_SKIN_CODE),
        ship_before_date=find_value(properties, PROPERTY_SHIP_BEFORE_DATE),
        session_validity=find_value(properties, PROPERTY_SESSION_VALIDITY),
        brand_code=find_value(properties, PROPERTY_BRAND_CODE),
        allowed_methods=find_value(properties, PROPERTY_ALLOWED_METHODS),
        blocked_methods=find_value(properties, PROPERTY_BLOCKED_METHODS),
    )


def to_payment_data(
    amount: Optional[Decimal],
    currency: Optional[str],
    transaction_external_key: str,
    payment_info: PaymentInfo,
) -> PaymentData:
    return PaymentData(
        amount=amount,
        currency=currency,
        transaction_external_key=transaction_external_key,
        payment_info=payment_info,
    )


def hpp_transaction_external_key(properties: Mapping[str, Any]) -> str:
    """Hosted-page payments have no billing transaction yet: use the caller's key or a fresh one."""
    return find_value(properties, PROPERTY_PAYMENT_EXTERNAL_KEY) or str(uuid.uuid4())


def payment_method_properties(payment_method: PaymentMethodRecord) -> dict[str, Any]:
    """Properties stored with the payment method (customer id, recurring type, token, ...)."""
    stored = payment_method.properties()
    if payment_method.token and PROPERTY_RECURRING_DETAIL_ID not in stored:
        stored[PROPERTY_RECURRING_DETAIL_ID] = payment_method.token
    return stored


def to_split_settlement_data(properties: Mapping[str, Any]) -> Optional[dict[str, str]]:
    """Collect ``splitSettlementData.*`` properties (prefix stripped), or None when there are none."""
    split = {
        key[len(PROPERTY_SPLIT_SETTLEMENT_DATA_PREFIX):]: str(value)
        for key, value in properties.items()
        if key.startswith(PROPERTY_SPLIT_SETTLEMENT_DATA_PREFIX) and value is not None
    }
    return split or None
