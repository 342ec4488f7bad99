"""Infrastructure models package exports."""
from .base import Base, metadata
from .gateway_response import GatewayResponseModel, PaymentMethodModel, HppRequestModel

__all__ = [
    "Base",
    "metadata",
    "GatewayResponseModel",
    "PaymentMethodModel",
    "HppRequestModel",
]
