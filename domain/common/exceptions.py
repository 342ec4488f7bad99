"""领域层业务异常定义，供领域、应用与基础设施使用。

异常分为三类（调用方据此决定是否可以重试）：
- 调用方输入错误：DomainValidationException / MissingPriorResponseException，不可重试
- 网关调用失败：GatewayCallFailedException，资金未发生变动，可安全重试
- 结果未落库：ResultNotRecordedException，网关已处理，禁止重试
"""
from __future__ import annotations

from typing import Optional

from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    retryable: bool = False

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class MissingPriorResponseException(BusinessException):
    """后续交易（CAPTURE/VOID/REFUND）找不到成功的授权记录"""

    def __init__(self, kb_payment_id: str, kb_transaction_id: str):
        super().__init__(
            code=PaymentCode.MISSING_PRIOR_RESPONSE,
            message=f"Unable to retrieve previous payment response for kbTransactionId {kb_transaction_id}",
            error_type="MissingPriorResponse",
            details={"kb_payment_id": kb_payment_id, "kb_transaction_id": kb_transaction_id},
        )


class GatewayCallFailedException(BusinessException):
    """网关客户端抛出异常，请求未产生结果"""

    retryable = True

    def __init__(self, operation: str, message: str, *, details: Optional[dict] = None):
        full_details = {"operation": operation}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.GATEWAY_CALL_FAILED,
            message=message,
            error_type="GatewayCallFailed",
            details=full_details,
        )


class ResultNotRecordedException(BusinessException):
    """网关调用成功但结果落库失败"""

    def __init__(
        self,
        message: str,
        *,
        psp_reference: Optional[str] = None,
        status: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_details = {"psp_reference": psp_reference, "status": status}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.RESULT_NOT_RECORDED,
            message=message,
            error_type="ResultNotRecorded",
            details=full_details,
        )


class RecordStoreException(BusinessException):
    """记录存储读写失败（网关尚未调用）"""

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.RECORD_STORE_ERROR,
            message=message,
            error_type="RecordStoreError",
            details=details,
        )


class HostedPaymentPageException(BusinessException):
    """托管支付页表单生成失败"""

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.HPP_FORM_ERROR,
            message=message,
            error_type="HostedPaymentPageError",
            details=details,
        )
