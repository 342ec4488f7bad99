"""
交易记录仓储接口 - 定义网关响应、支付方式与托管支付页请求的数据访问抽象
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from .entity import HppRequestRecord, PaymentMethodRecord, ResponseRecord, TransactionAttempt, TransactionType
from .gateway_response import GatewayResponse


class ResponseRepository(ABC):
    """网关响应仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def get_successful_authorization_response(self, kb_payment_id: str) -> Optional[ResponseRecord]:
        """获取支付最近一次成功的授权记录（AUTHORIZE/PURCHASE，结果为 Authorised 或 RedirectShopper）"""
        pass

    @abstractmethod
    async def get_response(self, psp_reference: str) -> Optional[ResponseRecord]:
        """根据 PSP 引用获取记录"""
        pass

    @abstractmethod
    async def get_responses(self, kb_payment_id: str) -> List[ResponseRecord]:
        """获取支付的全部记录（按写入顺序）"""
        pass

    @abstractmethod
    async def get_transaction_response(
        self,
        kb_transaction_id: str,
        transaction_type: TransactionType,
    ) -> Optional[ResponseRecord]:
        """获取计费交易最近一条同类型记录（重试时据此回放，避免重复调用网关）"""
        pass

    @abstractmethod
    async def add_response(
        self,
        attempt: TransactionAttempt,
        response: GatewayResponse,
        created_at: datetime,
    ) -> ResponseRecord:
        """保存网关调用结果"""
        pass

    @abstractmethod
    async def add_notification_record(
        self,
        attempt: TransactionAttempt,
        properties: dict[str, Any],
        created_at: datetime,
    ) -> ResponseRecord:
        """仅记录（托管支付页/异步通知），不经过网关调用"""
        pass

    @abstractmethod
    async def update_response(self, kb_transaction_id: str, properties: dict[str, Any]) -> Optional[ResponseRecord]:
        """向交易已有记录合并属性；不存在记录时返回 None"""
        pass


class PaymentMethodRepository(ABC):
    """支付方式仓储抽象接口"""

    @abstractmethod
    async def get_payment_method(self, kb_payment_method_id: str) -> Optional[PaymentMethodRecord]:
        """根据计费平台支付方式ID获取记录"""
        pass


class HppRequestRepository(ABC):
    """托管支付页请求仓储抽象接口"""

    @abstractmethod
    async def add_hpp_request(self, request: HppRequestRecord) -> HppRequestRecord:
        """保存托管支付页请求"""
        pass

    @abstractmethod
    async def get_by_transaction_external_key(self, transaction_external_key: str) -> Optional[HppRequestRecord]:
        """根据交易外部键（即通知中的 merchantReference）获取请求"""
        pass
