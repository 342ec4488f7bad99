"""
网关交易仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Any, List, Optional
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.transaction.entity import (
    HppRequestRecord,
    PaymentMethodRecord,
    ResponseRecord,
    TransactionAttempt,
    TransactionType,
)
from domain.transaction.gateway_response import GatewayResponse, NotificationPayload, PspResult
from domain.transaction.repository import (
    HppRequestRepository,
    PaymentMethodRepository,
    ResponseRepository,
)
from infrastructure.models.gateway_response import (
    GatewayResponseModel,
    HppRequestModel,
    PaymentMethodModel,
)
from core.logging_config import get_logger


logger = get_logger(__name__)

SUCCESSFUL_AUTHORIZATION_TYPES = (TransactionType.AUTHORIZE.value, TransactionType.PURCHASE.value)
SUCCESSFUL_AUTHORIZATION_RESULTS = (PspResult.AUTHORISED.code, PspResult.REDIRECT_SHOPPER.code)


def _json_safe(value: Any) -> Any:
    """JSON 列只接受基础类型，其它值（Decimal、枚举等）转为字符串"""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return str(value)


def _to_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


class SQLAlchemyResponseRepository(ResponseRepository):
    """网关响应仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: GatewayResponseModel) -> ResponseRecord:
        """将数据库模型转换为领域实体"""
        return ResponseRecord(
            id=model.id,
            kb_account_id=model.kb_account_id,
            kb_payment_id=model.kb_payment_id,
            kb_transaction_id=model.kb_transaction_id,
            transaction_type=TransactionType(model.transaction_type),
            amount=_to_decimal(model.amount),
            currency=model.currency,
            psp_result=model.psp_result,
            result_code=model.result_code,
            psp_reference=model.psp_reference,
            auth_code=model.auth_code,
            refusal_reason=model.refusal_reason,
            additional_data=dict(model.additional_data or {}),
            created_at=model.created_at,
        )

    def _to_model(self, entity: ResponseRecord) -> GatewayResponseModel:
        """将领域实体转换为数据库模型"""
        return GatewayResponseModel(
            kb_account_id=entity.kb_account_id,
            kb_payment_id=entity.kb_payment_id,
            kb_transaction_id=entity.kb_transaction_id,
            transaction_type=entity.transaction_type.value,
            amount=entity.amount,
            currency=entity.currency,
            psp_result=entity.psp_result,
            result_code=entity.result_code,
            psp_reference=entity.psp_reference,
            auth_code=entity.auth_code,
            refusal_reason=entity.refusal_reason,
            additional_data=_json_safe(entity.additional_data),
            created_at=entity.created_at or datetime.now(timezone.utc),
        )

    async def _insert(self, record: ResponseRecord) -> ResponseRecord:
        db_response = self._to_model(record)
        self.session.add(db_response)
        await self.session.flush()
        await self.session.refresh(db_response)
        logger.info(
            "gateway_response_saved",
            response_id=db_response.id,
            kb_transaction_id=db_response.kb_transaction_id,
            transaction_type=db_response.transaction_type,
            psp_result=db_response.psp_result,
        )
        return self._to_entity(db_response)

    async def get_successful_authorization_response(self, kb_payment_id: str) -> Optional[ResponseRecord]:
        """获取支付最近一次成功的授权记录"""
        result = await self.session.execute(
            select(GatewayResponseModel)
            .where(
                GatewayResponseModel.kb_payment_id == kb_payment_id,
                GatewayResponseModel.transaction_type.in_(SUCCESSFUL_AUTHORIZATION_TYPES),
                GatewayResponseModel.psp_result.in_(SUCCESSFUL_AUTHORIZATION_RESULTS),
            )
            .order_by(GatewayResponseModel.id.desc())
            .limit(1)
        )
        db_response = result.scalar_one_or_none()
        return self._to_entity(db_response) if db_response else None

    async def get_response(self, psp_reference: str) -> Optional[ResponseRecord]:
        """根据 PSP 引用获取最近的记录"""
        result = await self.session.execute(
            select(GatewayResponseModel)
            .where(GatewayResponseModel.psp_reference == psp_reference)
            .order_by(GatewayResponseModel.id.desc())
            .limit(1)
        )
        db_response = result.scalar_one_or_none()
        return self._to_entity(db_response) if db_response else None

    async def get_responses(self, kb_payment_id: str) -> List[ResponseRecord]:
        """获取支付的全部记录（按写入顺序）"""
        result = await self.session.execute(
            select(GatewayResponseModel)
            .where(GatewayResponseModel.kb_payment_id == kb_payment_id)
            .order_by(GatewayResponseModel.id.asc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def get_transaction_response(
        self,
        kb_transaction_id: str,
        transaction_type: TransactionType,
    ) -> Optional[ResponseRecord]:
        """获取计费交易最近一条同类型记录"""
        result = await self.session.execute(
            select(GatewayResponseModel)
            .where(
                GatewayResponseModel.kb_transaction_id == kb_transaction_id,
                GatewayResponseModel.transaction_type == transaction_type.value,
            )
            .order_by(GatewayResponseModel.id.desc())
            .limit(1)
        )
        db_response = result.scalar_one_or_none()
        return self._to_entity(db_response) if db_response else None

    async def add_response(
        self,
        attempt: TransactionAttempt,
        response: GatewayResponse,
        created_at: datetime,
    ) -> ResponseRecord:
        """保存网关调用结果"""
        return await self._insert(ResponseRecord.from_response(attempt, response, created_at))

    async def add_notification_record(
        self,
        attempt: TransactionAttempt,
        properties: dict[str, Any],
        created_at: datetime,
    ) -> ResponseRecord:
        """仅记录（托管支付页/异步通知）"""
        return await self._insert(
            ResponseRecord.from_response(attempt, NotificationPayload(dict(properties)), created_at)
        )

    async def update_response(self, kb_transaction_id: str, properties: dict[str, Any]) -> Optional[ResponseRecord]:
        """向交易最近一条记录合并属性"""
        result = await self.session.execute(
            select(GatewayResponseModel)
            .where(GatewayResponseModel.kb_transaction_id == kb_transaction_id)
            .order_by(GatewayResponseModel.id.desc())
            .limit(1)
        )
        db_response = result.scalar_one_or_none()
        if not db_response:
            return None

        record = self._to_entity(db_response)
        record.merge_properties(properties)

        # 更新字段
        db_response.additional_data = _json_safe(record.additional_data)
        db_response.psp_reference = record.psp_reference
        db_response.auth_code = record.auth_code

        await self.session.flush()
        await self.session.refresh(db_response)

        logger.info(
            "gateway_response_updated",
            response_id=db_response.id,
            kb_transaction_id=kb_transaction_id,
        )
        return self._to_entity(db_response)


class SQLAlchemyPaymentMethodRepository(PaymentMethodRepository):
    """支付方式仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_payment_method(self, kb_payment_method_id: str) -> Optional[PaymentMethodRecord]:
        result = await self.session.execute(
            select(PaymentMethodModel).where(PaymentMethodModel.kb_payment_method_id == kb_payment_method_id)
        )
        model = result.scalar_one_or_none()
        if not model:
            return None
        return PaymentMethodRecord(
            kb_payment_method_id=model.kb_payment_method_id,
            kb_account_id=model.kb_account_id,
            token=model.token,
            additional_data=dict(model.additional_data or {}),
        )

    async def add_payment_method(self, payment_method: PaymentMethodRecord) -> PaymentMethodRecord:
        """保存支付方式（供支付方式同步与测试使用）"""
        model = PaymentMethodModel(
            kb_payment_method_id=payment_method.kb_payment_method_id,
            kb_account_id=payment_method.kb_account_id,
            token=payment_method.token,
            additional_data=_json_safe(payment_method.additional_data),
        )
        self.session.add(model)
        await self.session.flush()
        return payment_method


class SQLAlchemyHppRequestRepository(HppRequestRepository):
    """托管支付页请求仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: HppRequestModel) -> HppRequestRecord:
        return HppRequestRecord(
            id=model.id,
            kb_account_id=model.kb_account_id,
            kb_payment_id=model.kb_payment_id,
            kb_transaction_id=model.kb_transaction_id,
            transaction_external_key=model.transaction_external_key,
            additional_data=dict(model.additional_data or {}),
            created_at=model.created_at,
        )

    async def add_hpp_request(self, request: HppRequestRecord) -> HppRequestRecord:
        model = HppRequestModel(
            kb_account_id=request.kb_account_id,
            kb_payment_id=request.kb_payment_id,
            kb_transaction_id=request.kb_transaction_id,
            transaction_external_key=request.transaction_external_key,
            additional_data=_json_safe(request.additional_data),
            created_at=request.created_at or datetime.now(timezone.utc),
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        logger.info(
            "hpp_request_saved",
            hpp_request_id=model.id,
            transaction_external_key=model.transaction_external_key,
        )
        return self._to_entity(model)

    async def get_by_transaction_external_key(self, transaction_external_key: str) -> Optional[HppRequestRecord]:
        result = await self.session.execute(
            select(HppRequestModel)
            .where(HppRequestModel.transaction_external_key == transaction_external_key)
            .order_by(HppRequestModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None
