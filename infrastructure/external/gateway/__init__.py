"""
Factory for gateway clients and hosted payment page adapters.
"""
from __future__ import annotations

from typing import Optional

from application.ports.gateway_client import GatewayClient
from application.ports.hosted_payment_page import HostedPaymentPage
from core.settings import gateway_settings


def get_gateway_client(provider: Optional[str] = None) -> GatewayClient:
    name = (provider or gateway_settings.default_provider).lower()
    if name in {"sandbox", "test"}:
        from .sandbox_client import SandboxGatewayClient
        return SandboxGatewayClient()
    raise ValueError(f"Unsupported gateway provider: {name}")


def get_hosted_payment_page(provider: Optional[str] = None) -> HostedPaymentPage:
    name = (provider or gateway_settings.default_provider).lower()
    if name in {"sandbox", "test"}:
        from .sandbox_hpp import SandboxHostedPaymentPage
        return SandboxHostedPaymentPage(hpp_target=gateway_settings.hpp_target)
    raise ValueError(f"Unsupported gateway provider: {name}")
