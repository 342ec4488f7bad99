"""Pytest bootstrap configuration.

Environment defaults are set before any module reads the settings, then
in-memory collaborators (record store, billing platform) are exposed as
fixtures for the orchestration tests.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from application.dtos.transactions import Account, PendingPayment  # noqa: E402
from application.services.transaction_service import TransactionService  # noqa: E402
from core.settings import GatewaySettings  # noqa: E402
from domain.common.unit_of_work import AbstractUnitOfWork  # noqa: E402
from domain.transaction.entity import (  # noqa: E402
    HppRequestRecord,
    PaymentMethodRecord,
    ResponseRecord,
    TransactionAttempt,
    TransactionType,
)
from domain.transaction.gateway_response import GatewayResponse, NotificationPayload, PspResult  # noqa: E402
from domain.transaction.repository import (  # noqa: E402
    HppRequestRepository,
    PaymentMethodRepository,
    ResponseRepository,
)
from infrastructure.external.gateway.sandbox_client import SandboxGatewayClient  # noqa: E402
from infrastructure.external.gateway.sandbox_hpp import SandboxHostedPaymentPage  # noqa: E402


FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryStore:
    def __init__(self) -> None:
        self.responses: list[ResponseRecord] = []
        self.payment_methods: dict[str, PaymentMethodRecord] = {}
        self.hpp_requests: list[HppRequestRecord] = []
        self.fail_writes = False
        self.fail_reads = False
        self.notification_records = 0


class InMemoryResponseRepository(ResponseRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _check_read(self):
        if self.store.fail_reads:
            raise ConnectionError("record store unavailable")

    def _append(self, record: ResponseRecord) -> ResponseRecord:
        if self.store.fail_writes:
            raise ConnectionError("record store unavailable")
        record.id = len(self.store.responses) + 1
        self.store.responses.append(record)
        return record

    async def get_successful_authorization_response(self, kb_payment_id):
        self._check_read()
        for record in reversed(self.store.responses):
            if (
                record.kb_payment_id == kb_payment_id
                and record.transaction_type in (TransactionType.AUTHORIZE, TransactionType.PURCHASE)
                and record.psp_result in (PspResult.AUTHORISED.code, PspResult.REDIRECT_SHOPPER.code)
            ):
                return record
        return None

    async def get_response(self, psp_reference):
        self._check_read()
        for record in reversed(self.store.responses):
            if record.psp_reference == psp_reference:
                return record
        return None

    async def get_responses(self, kb_payment_id):
        self._check_read()
        return [r for r in self.store.responses if r.kb_payment_id == kb_payment_id]

    async def get_transaction_response(self, kb_transaction_id, transaction_type):
        self._check_read()
        for record in reversed(self.store.responses):
            if record.kb_transaction_id == kb_transaction_id and record.transaction_type == transaction_type:
                return record
        return None

    async def add_response(self, attempt: TransactionAttempt, response: GatewayResponse, created_at: datetime):
        return self._append(ResponseRecord.from_response(attempt, response, created_at))

    async def add_notification_record(self, attempt, properties, created_at):
        self.store.notification_records += 1
        return self._append(ResponseRecord.from_response(attempt, NotificationPayload(dict(properties)), created_at))

    async def update_response(self, kb_transaction_id, properties):
        for record in reversed(self.store.responses):
            if record.kb_transaction_id == kb_transaction_id:
                record.merge_properties(properties)
                return record
        return None


class InMemoryPaymentMethodRepository(PaymentMethodRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_payment_method(self, kb_payment_method_id):
        return self.store.payment_methods.get(kb_payment_method_id)


class InMemoryHppRequestRepository(HppRequestRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def add_hpp_request(self, request):
        request.id = len(self.store.hpp_requests) + 1
        self.store.hpp_requests.append(request)
        return request

    async def get_by_transaction_external_key(self, transaction_external_key):
        for request in reversed(self.store.hpp_requests):
            if request.transaction_external_key == transaction_external_key:
                return request
        return None


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, store: InMemoryStore, *, readonly: bool = False):
        super().__init__(readonly=readonly)
        self.response_repository = InMemoryResponseRepository(store)
        self.payment_method_repository = InMemoryPaymentMethodRepository(store)
        self.hpp_request_repository = InMemoryHppRequestRepository(store)

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        self._committed = False


class StubBillingPlatform:
    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.pending_payments: list[dict[str, Any]] = []

    async def get_account(self, kb_account_id: str) -> Account:
        return self.accounts.get(kb_account_id) or Account(
            id=kb_account_id,
            external_key=f"ext-{kb_account_id}",
            country="NL",
            currency="EUR",
            email="shopper@example.com",
            first_name="Jane",
            last_name="Doe",
            locale="nl_NL",
        )

    async def get_transaction_external_key(self, kb_payment_id: str, kb_transaction_id: str) -> str:
        return f"key-{kb_transaction_id}"

    async def create_pending_payment(self, *, auth_mode, account, amount, currency, transaction_external_key, properties):
        self.pending_payments.append(
            {
                "auth_mode": auth_mode,
                "account_id": account.id,
                "amount": amount,
                "currency": currency,
                "transaction_external_key": transaction_external_key,
                "properties": properties,
            }
        )
        return PendingPayment(
            kb_payment_id="pending-payment",
            kb_transaction_id="pending-transaction",
            transaction_external_key=transaction_external_key,
        )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    def _factory(*, readonly: bool = False) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store, readonly=readonly)

    return _factory


@pytest.fixture
def billing() -> StubBillingPlatform:
    return StubBillingPlatform()


@pytest.fixture
def gateway() -> SandboxGatewayClient:
    return SandboxGatewayClient(refuse_amounts={Decimal("13.13")}, refusal_reason="Not enough balance")


@pytest.fixture
def gateway_config() -> GatewaySettings:
    return GatewaySettings(
        merchant_account="DefaultMerchant",
        merchant_accounts={"US": "UsMerchant"},
        hpp_target="https://hpp.example.com/pay",
        skins={"NL": "skinNL"},
        hpp_skin="defaultSkin",
    )


@pytest.fixture
def service(uow_factory, gateway, billing, gateway_config) -> TransactionService:
    return TransactionService(
        uow_factory,
        gateway,
        billing,
        hosted_payment_page=SandboxHostedPaymentPage(gateway_config.hpp_target),
        settings=gateway_config,
        clock=lambda: FIXED_NOW,
    )


def gateway_operations(client: SandboxGatewayClient) -> list[str]:
    return [operation for operation, _ in client.calls]


@pytest.fixture
def operations():
    return gateway_operations
