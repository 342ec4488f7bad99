"""
Gateway response shapes.

The gateway client hands back one of three variants. They are modelled as an
explicit sum type (``GatewayResponse``) so callers dispatch on the variant
instead of probing which optional field happens to be set.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


# Convention keys inside additional data / notification properties
EXCEPTION_MESSAGE = "exceptionMessage"
EXCEPTION_CLASS = "exceptionClass"
ADYEN_CALL_ERROR_STATUS = "adyenCallErrorStatus"


class CallErrorStatus(str, Enum):
    """Technical failure of a gateway call (no business result available)."""

    REQUEST_NOT_SEND = "REQUEST_NOT_SEND"
    RESPONSE_ABOUT_INVALID_REQUEST = "RESPONSE_ABOUT_INVALID_REQUEST"
    RESPONSE_NOT_RECEIVED = "RESPONSE_NOT_RECEIVED"
    RESPONSE_INVALID = "RESPONSE_INVALID"
    UNKNOWN_FAILURE = "UNKNOWN_FAILURE"


class PspResult(Enum):
    """Business result reported by the gateway.

    Each member lists the ids the gateway uses for it; the first one is the
    canonical id that gets persisted.
    """

    INITIALISED = ("Initialised",)
    AUTHORISED = ("Authorised",)
    REDIRECT_SHOPPER = ("RedirectShopper",)
    RECEIVED = (
        "Received",
        "[capture-received]",
        "[cancel-received]",
        "[refund-received]",
        "[cancelOrRefund-received]",
    )
    REFUSED = ("Refused",)
    PENDING = ("Pending",)
    ERROR = ("Error", "[error]")
    CANCELLED = ("Cancelled",)

    def __init__(self, *ids: str) -> None:
        self.ids = ids

    @property
    def code(self) -> str:
        return self.ids[0]

    @classmethod
    def from_code(cls, code: Optional[str]) -> Optional["PspResult"]:
        if code is None:
            return None
        for member in cls:
            if code in member.ids:
                return member
        return None


@dataclass(frozen=True)
class PurchaseResult:
    """Result of authorize / authorize3DSecure / credit.

    Either ``call_error_status`` (technical failure) or ``result`` (business
    outcome) is set, never both.
    """

    result: Optional[PspResult] = None
    result_code: Optional[str] = None
    call_error_status: Optional[CallErrorStatus] = None
    psp_reference: Optional[str] = None
    auth_code: Optional[str] = None
    reason: Optional[str] = None
    form_parameters: dict[str, str] = field(default_factory=dict)
    additional_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModificationResult:
    """Result of capture / cancel / refund."""

    technically_successful: bool
    psp_reference: Optional[str] = None
    response: Optional[str] = None
    additional_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotificationPayload:
    """Property bag decoded from an asynchronous notification."""

    properties: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        value = self.properties.get(key)
        return None if value is None else str(value)


GatewayResponse = Union[PurchaseResult, ModificationResult, NotificationPayload]
