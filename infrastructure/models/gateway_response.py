"""
网关交易数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, JSON, Index
from datetime import datetime, timezone

from .base import Base


class GatewayResponseModel(Base):
    """
    网关响应数据库模型

    每次网关调用或仅记录（托管支付页/异步通知）写入一行；
    3-D Secure 续接会为同一交易再写一行，因此 kb_transaction_id 不唯一
    """
    __tablename__ = "gateway_responses"

    # 主键
    id = Column(Integer, primary_key=True, index=True)

    # 计费平台标识
    kb_account_id = Column(String(36), nullable=False, comment="计费账户ID")
    kb_payment_id = Column(String(36), nullable=False, index=True, comment="计费支付ID")
    kb_transaction_id = Column(String(36), nullable=False, index=True, comment="计费交易ID")
    transaction_type = Column(String(32), nullable=False, comment="交易类型: AUTHORIZE/CAPTURE/PURCHASE/VOID/REFUND/CREDIT")

    # 金额信息（VOID 无金额）
    amount = Column(Numeric(precision=15, scale=9), nullable=True, comment="交易金额")
    currency = Column(String(3), nullable=True, comment="货币代码 ISO-4217")

    # 网关结果
    psp_result = Column(String(64), nullable=True, comment="网关业务结果，如 Authorised/Refused/Received")
    result_code = Column(String(64), nullable=True, comment="结果码/修改请求响应")
    psp_reference = Column(String(64), nullable=True, index=True, comment="网关 PSP 引用")
    auth_code = Column(String(64), nullable=True, comment="授权码")
    refusal_reason = Column(Text, nullable=True, comment="拒绝/失败原因")

    # 写入时的网关响应内容（JSON），用于重放
    additional_data = Column(JSON, nullable=True, comment="附加数据")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    # 索引
    __table_args__ = (
        Index("ix_gateway_responses_payment_type", "kb_payment_id", "transaction_type"),
    )

    def __repr__(self):
        return (
            f"<GatewayResponseModel(id={self.id}, kb_transaction_id='{self.kb_transaction_id}', "
            f"type='{self.transaction_type}', psp_result='{self.psp_result}')>"
        )


class PaymentMethodModel(Base):
    """网关侧支付方式模型（recurring detail token）"""
    __tablename__ = "gateway_payment_methods"

    id = Column(Integer, primary_key=True, index=True)
    kb_payment_method_id = Column(String(36), nullable=False, unique=True, index=True, comment="计费支付方式ID")
    kb_account_id = Column(String(36), nullable=True, index=True, comment="计费账户ID")
    token = Column(String(255), nullable=True, comment="recurring detail reference")
    additional_data = Column(JSON, nullable=True, comment="附加数据")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self):
        return f"<PaymentMethodModel(id={self.id}, kb_payment_method_id='{self.kb_payment_method_id}')>"


class HppRequestModel(Base):
    """托管支付页请求模型"""
    __tablename__ = "gateway_hpp_requests"

    id = Column(Integer, primary_key=True, index=True)
    kb_account_id = Column(String(36), nullable=False, comment="计费账户ID")
    kb_payment_id = Column(String(36), nullable=True, index=True, comment="计费支付ID（创建待支付时才有）")
    kb_transaction_id = Column(String(36), nullable=True, comment="计费交易ID")
    transaction_external_key = Column(String(255), nullable=False, index=True, comment="交易外部键（通知中的 merchantReference）")
    additional_data = Column(JSON, nullable=True, comment="附加数据")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self):
        return (
            f"<HppRequestModel(id={self.id}, "
            f"transaction_external_key='{self.transaction_external_key}')>"
        )
