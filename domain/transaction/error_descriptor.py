"""
Gateway error message / error code extraction.

Error codes are stored in a 32 character column. When the natural code is a
fully qualified exception class name that does not fit, its package segments
are abbreviated greedily from left to right (Logback's target-length class
name abbreviation). Historical rows were written with this exact algorithm,
so it must not be replaced by a generic truncation.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.transaction.gateway_response import (
    EXCEPTION_CLASS,
    EXCEPTION_MESSAGE,
    GatewayResponse,
    ModificationResult,
    NotificationPayload,
    PspResult,
    PurchaseResult,
)
from domain.transaction.properties import PROPERTY_PSP_RESULT, PROPERTY_REASON, PROPERTY_RESULT_CODE


ERROR_CODE_MAX_LENGTH = 32
# Only the first 16 separators are considered; anything after them stays
# attached to the last segment.
MAX_DOT_COUNT = 16


def _to_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def truncate(value: Optional[str], max_length: int = ERROR_CODE_MAX_LENGTH) -> Optional[str]:
    if value is None or len(value) <= max_length:
        return value
    return value[:max_length]


def _dot_indexes(class_name: str) -> list[int]:
    indexes: list[int] = []
    k = class_name.find(".")
    while k != -1 and len(indexes) < MAX_DOT_COUNT:
        indexes.append(k)
        k = class_name.find(".", k + 1)
    return indexes


def _segment_lengths(class_name: str, dot_indexes: list[int], target_length: int) -> list[int]:
    """Length kept for each segment, dot included (except for the first one)."""
    to_trim = len(class_name) - target_length
    lengths: list[int] = []
    previous_dot = -1
    for dot in dot_indexes:
        available = dot - previous_dot - 1
        if to_trim > 0:
            kept = available if available < 1 else 1
        else:
            kept = available
        to_trim -= available - kept
        lengths.append(kept + 1)
        previous_dot = dot
    lengths.append(len(class_name) - dot_indexes[-1])
    return lengths


def abbreviate(fq_class_name: str, target_length: int = ERROR_CODE_MAX_LENGTH) -> str:
    """Shorten package segments of a dotted name until it fits ``target_length``.

    The class simple name is never shortened, so the result can still exceed
    the target; names without any dot are returned unchanged.
    """
    dot_indexes = _dot_indexes(fq_class_name)
    if not dot_indexes:
        return fq_class_name

    lengths = _segment_lengths(fq_class_name, dot_indexes, target_length)
    parts = [fq_class_name[: lengths[0] - 1]]
    for i in range(1, len(dot_indexes) + 1):
        start = dot_indexes[i - 1]
        parts.append(fq_class_name[start : start + lengths[i]])
    return "".join(parts)


def exception_class_code(additional_data: Optional[Mapping[str, Any]]) -> Optional[str]:
    fq_class_name = _to_str((additional_data or {}).get(EXCEPTION_CLASS))
    if fq_class_name is None or len(fq_class_name) <= ERROR_CODE_MAX_LENGTH:
        return fq_class_name
    return abbreviate(fq_class_name, ERROR_CODE_MAX_LENGTH)


def error_message(reason: Optional[str], additional_data: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Explicit refusal/failure reason, else the exception message from additional data."""
    if reason is not None:
        return reason
    return _to_str((additional_data or {}).get(EXCEPTION_MESSAGE))


def error_code(
    code: Optional[str],
    additional_data: Optional[Mapping[str, Any]],
    psp_result: Optional[str] = None,
) -> Optional[str]:
    """Explicit result/response code, else the PSP result, else the (abbreviated) exception class; always ≤ 32 chars."""
    if code is not None:
        return truncate(code)
    if psp_result is not None:
        return truncate(psp_result)
    return truncate(exception_class_code(additional_data))


def gateway_error(response: GatewayResponse) -> Optional[str]:
    if isinstance(response, PurchaseResult):
        return error_message(response.reason, response.additional_data)
    if isinstance(response, ModificationResult):
        return error_message(None, response.additional_data)
    if isinstance(response, NotificationPayload):
        return error_message(response.get(PROPERTY_REASON), response.properties)
    raise TypeError(f"Unsupported gateway response: {type(response).__name__}")


def gateway_error_code(response: GatewayResponse) -> Optional[str]:
    if isinstance(response, PurchaseResult):
        psp_result = response.result.code if response.result is not None else None
        return error_code(response.result_code, response.additional_data, psp_result)
    if isinstance(response, ModificationResult):
        psp_result = PspResult.RECEIVED.code if response.technically_successful else None
        return error_code(response.response, response.additional_data, psp_result)
    if isinstance(response, NotificationPayload):
        return error_code(
            response.get(PROPERTY_RESULT_CODE),
            response.properties,
            response.get(PROPERTY_PSP_RESULT),
        )
    raise TypeError(f"Unsupported gateway response: {type(response).__name__}")
