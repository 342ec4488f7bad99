"""
Payment plugin specific codes.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Gateway/record store errors (6xxxx)
    GATEWAY_CALL_FAILED = 60000
    RESULT_NOT_RECORDED = 60001
    MISSING_PRIOR_RESPONSE = 60002
    RECORD_STORE_ERROR = 60003
    HPP_FORM_ERROR = 60004
