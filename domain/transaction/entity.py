"""
网关交易领域实体 - 交易请求、处理结果与持久化记录
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException
from domain.transaction.gateway_response import (
    ADYEN_CALL_ERROR_STATUS,
    GatewayResponse,
    ModificationResult,
    NotificationPayload,
    PspResult,
    PurchaseResult,
)
from domain.transaction.properties import (
    PROPERTY_AUTH_CODE,
    PROPERTY_PSP_REFERENCE,
    PROPERTY_PSP_RESULT,
    PROPERTY_REASON,
    PROPERTY_RESULT_CODE,
)


class TransactionType(str, Enum):
    """计费平台交易类型"""
    AUTHORIZE = "AUTHORIZE"
    CAPTURE = "CAPTURE"
    PURCHASE = "PURCHASE"
    VOID = "VOID"
    REFUND = "REFUND"
    CREDIT = "CREDIT"


class PaymentPluginStatus(str, Enum):
    """返回给计费平台的统一状态"""
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    ERROR = "ERROR"
    CANCELED = "CANCELED"
    UNDEFINED = "UNDEFINED"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _to_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class TransactionAttempt:
    """
    一次计费平台交易请求（单次编排调用内不可变）

    业务规则：
    1. 计费账户、支付、交易ID 必填
    2. 除 VOID 外金额与币种必填
    3. 金额不能为负
    """

    kb_account_id: str
    kb_payment_id: str
    kb_transaction_id: str
    kb_payment_method_id: Optional[str]
    transaction_type: TransactionType
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    properties: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """初始化后验证"""
        for name in ("kb_account_id", "kb_payment_id", "kb_transaction_id"):
            if not getattr(self, name):
                raise DomainValidationException(f"{name} 不能为空", field=name)
        if self.transaction_type != TransactionType.VOID:
            if self.amount is None:
                raise DomainValidationException(
                    f"{self.transaction_type.value} 交易必须指定金额",
                    field="amount",
                )
            if not self.currency:
                raise DomainValidationException(
                    f"{self.transaction_type.value} 交易必须指定币种",
                    field="currency",
                )
        if self.amount is not None and self.amount < 0:
            raise DomainValidationException(f"交易金额不能为负: {self.amount}", field="amount")
        if self.currency and (len(self.currency) != 3 or not self.currency.isalpha()):
            raise DomainValidationException(f"无效的货币代码: {self.currency}", field="currency")


@dataclass
class PluginTransactionInfo:
    """归一化后的交易结果，返回给计费平台"""

    kb_payment_id: str
    kb_transaction_id: str
    transaction_type: TransactionType
    amount: Optional[Decimal]
    currency: Optional[str]
    status: PaymentPluginStatus
    gateway_error: Optional[str]
    gateway_error_code: Optional[str]
    psp_reference: Optional[str]
    auth_code: Optional[str]
    created_at: datetime
    effective_at: datetime
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class ResponseRecord:
    """
    网关响应持久化记录

    additional_data 保存了写入时的网关响应内容，重放时据此重新计算状态与错误信息。
    """

    id: Optional[int]
    kb_account_id: str
    kb_payment_id: str
    kb_transaction_id: str
    transaction_type: TransactionType
    amount: Optional[Decimal]
    currency: Optional[str]
    psp_result: Optional[str] = None
    result_code: Optional[str] = None
    psp_reference: Optional[str] = None
    auth_code: Optional[str] = None
    refusal_reason: Optional[str] = None
    additional_data: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at)
        if self.additional_data is None:
            self.additional_data = {}

    @classmethod
    def from_response(
        cls,
        attempt: TransactionAttempt,
        response: GatewayResponse,
        created_at: datetime,
    ) -> "ResponseRecord":
        """将网关响应序列化为记录（所有记录存储实现共用的唯一规则）"""
        if isinstance(response, PurchaseResult):
            additional_data = {**response.form_parameters, **response.additional_data}
            if response.call_error_status is not None:
                additional_data[ADYEN_CALL_ERROR_STATUS] = response.call_error_status.value
            columns = dict(
                psp_result=response.result.code if response.result is not None else None,
                result_code=response.result_code,
                psp_reference=response.psp_reference,
                auth_code=response.auth_code,
                refusal_reason=response.reason,
                additional_data=additional_data,
            )
        elif isinstance(response, ModificationResult):
            columns = dict(
                psp_result=PspResult.RECEIVED.code if response.technically_successful else None,
                result_code=response.response,
                psp_reference=response.psp_reference,
                auth_code=None,
                refusal_reason=None,
                additional_data=dict(response.additional_data),
            )
        elif isinstance(response, NotificationPayload):
            columns = dict(
                psp_result=response.get(PROPERTY_PSP_RESULT),
                result_code=response.get(PROPERTY_RESULT_CODE),
                psp_reference=response.get(PROPERTY_PSP_REFERENCE),
                auth_code=response.get(PROPERTY_AUTH_CODE),
                refusal_reason=response.get(PROPERTY_REASON),
                additional_data=dict(response.properties),
            )
        else:
            raise TypeError(f"Unsupported gateway response: {type(response).__name__}")

        return cls(
            id=None,
            kb_account_id=attempt.kb_account_id,
            kb_payment_id=attempt.kb_payment_id,
            kb_transaction_id=attempt.kb_transaction_id,
            transaction_type=attempt.transaction_type,
            amount=attempt.amount,
            currency=attempt.currency,
            created_at=created_at,
            **columns,
        )

    def merge_properties(self, properties: dict[str, Any]) -> None:
        """合并新的属性（例如托管支付页跳转返回后补充的 PSP 引用）"""
        self.additional_data = {**self.additional_data, **properties}
        psp_reference = _to_str(properties.get(PROPERTY_PSP_REFERENCE))
        if psp_reference:
            self.psp_reference = psp_reference
        auth_code = _to_str(properties.get(PROPERTY_AUTH_CODE))
        if auth_code:
            self.auth_code = auth_code


@dataclass
class PaymentMethodRecord:
    """网关侧支付方式（recurring detail token 等）"""

    kb_payment_method_id: Optional[str]
    kb_account_id: Optional[str] = None
    token: Optional[str] = None
    additional_data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls, kb_payment_method_id: Optional[str]) -> "PaymentMethodRecord":
        """支付数据全部由调用属性提供时使用的空记录"""
        return cls(kb_payment_method_id=kb_payment_method_id)

    def properties(self) -> dict[str, Any]:
        return dict(self.additional_data or {})


@dataclass
class HppRequestRecord:
    """托管支付页请求记录：通知中不包含用户信息，需要预先保存支付与用户的映射"""

    id: Optional[int]
    kb_account_id: str
    kb_payment_id: Optional[str]
    kb_transaction_id: Optional[str]
    transaction_external_key: str
    additional_data: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at)
        if self.additional_data is None:
            self.additional_data = {}
